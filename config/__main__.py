"""Command line interface for testing configuration loading"""
from . import settings_conf
from pathlib import Path


def main():
    """Display loaded configuration"""
    print("\nSettings Configuration:")
    print("-" * 50)
    for key, value in settings_conf.items():
        if key == 'jwt_secret':
            value = '********'
        print(f"{key}: {value}")

    # Save example configuration file
    examples_dir = Path("examples")
    examples_dir.mkdir(exist_ok=True)

    with open(examples_dir / "settings.conf.example", "w") as f:
        f.write("""[DEFAULT]
# PostgreSQL / CockroachDB connection URL
db_url = postgresql://root@localhost:26257/foodshare?sslmode=disable
# postgres or memory (memory keeps everything in-process, for development)
storage_backend = postgres
# Secret used to sign and verify bearer tokens
jwt_secret = change-me
jwt_algorithm = HS256
token_expiry_days = 30
# Where uploaded food photos are written (served at /uploads)
uploads_dir = uploads
max_upload_bytes = 5242880
# Listings expire this many hours after creation
listing_ttl_hours = 24
notification_limit = 50
# Refuse updates and deletes once a listing has been claimed
lock_claimed_listings = false
host = 0.0.0.0
port = 5000
""")
    print(f"\nExample written to {examples_dir / 'settings.conf.example'}")


if __name__ == "__main__":
    main()
