"""Environment-based configuration example."""

import os
from tinybird_migrate import MigrateOptions, run_migrate


def main():
    # Configuration via environment variables
    patterns = os.getenv("TB_MIGRATE_PATTERNS", "").split(
        ",") if os.getenv("TB_MIGRATE_PATTERNS") else ["."]

    options = MigrateOptions(
        cwd=os.getenv("TB_MIGRATE_CWD", os.getcwd()),
        patterns=patterns,
        out=os.getenv("TB_MIGRATE_OUT", "tinybird_migration.py"),
        strict=os.getenv("TB_MIGRATE_STRICT", "true").lower() == "true",
        dry_run=os.getenv("DRY_RUN", "true").lower() == "true",
        force=os.getenv("TB_MIGRATE_FORCE", "false").lower() == "true"
    )

    result = run_migrate(options)

    if result.dry_run and result.output_content:
        print(result.output_content)

    print(f"Migration {'succeeded' if result.success else 'failed'}: "
          f"{len(result.migrated)} migrated, {len(result.errors)} errors")


if __name__ == "__main__":
    main()
