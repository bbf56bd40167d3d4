"""
Example: Basic Datafile Migration

This example shows how to migrate a Tinybird project directory into a
single Python module of SDK definitions.
"""

from tinybird_migrate import MigrateOptions, run_migrate


def main():
    # Migrate every datafile under ./tinybird
    options = MigrateOptions(
        cwd="./tinybird",
        patterns=["."],
        out="tinybird_migration.py",
        force=True
    )

    result = run_migrate(options)

    print(f"Migrated {len(result.migrated)} resources")
    for resource in result.migrated:
        print(f"  - {resource.kind}: {resource.name}")

    for error in result.errors:
        print(f"Failed {error.file_path}: {error.message}")

    for warning in result.warnings:
        print(f"Warning {warning.file_path}: {warning.message}")

    if result.success:
        print(f"Output written to {result.output_path}")


if __name__ == "__main__":
    main()
