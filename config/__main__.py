"""Command line interface for testing configuration loading"""
import sys
from pathlib import Path

from . import load_config, SettingsError

EXAMPLE_SETTINGS = """[DEFAULT]
# Database holding transfers, bitcoinaddresses, bitcoinwallets and jobs
db_url = postgresql://root@localhost:26257/defaultdb?sslmode=disable

# Price service used for base volumes. Leave empty to skip valuation.
price_api_url = https://api.blooks.io
price_asset = XBT
base_currencies = EUR,USD
price_timeout = 10

# Job queue
poll_interval = 5
max_job_attempts = 3
# Seconds before a job whose worker went away is delivered again
job_timeout = 300

# Database connection pool
db_pool_min_size = 1
db_pool_max_size = 10
"""

def main():
    """Display loaded configuration"""
    # Save example configuration file
    examples_dir = Path("examples")
    examples_dir.mkdir(exist_ok=True)
    with open(examples_dir / "settings.conf.example", "w") as f:
        f.write(EXAMPLE_SETTINGS)

    try:
        settings = load_config(sys.argv[1] if len(sys.argv) > 1 else None)
    except SettingsError as e:
        print(str(e))
        sys.exit(1)

    print("\nSettings Configuration:")
    print("-" * 50)
    for key, value in settings.items():
        print(f"{key}: {value}")

if __name__ == "__main__":
    main()
