#!/usr/bin/env python
"""
Command line entry point for the bed occupancy backend.

Besides Django's own commands the ``wards`` app adds
``populate_data`` (demo departments, staff, beds and admissions) and
``refresh_caches`` (recompute the cached occupancy stats).
"""
import os
import sys


def main() -> None:
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'hms.settings')
    try:
        from django.core.management import execute_from_command_line  # type: ignore
    except ImportError as exc:
        raise ImportError(
            "Couldn't import Django. Install the project with "
            "`pip install -e .[test]` inside a virtual environment."
        ) from exc
    execute_from_command_line(sys.argv)


if __name__ == '__main__':
    main()
