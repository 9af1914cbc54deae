"""Convenience launcher for the priority score run.

Usage:
  python run_priority_score.py [--config settings.yaml] [--dry-run | --live]

Settings are read from ``settings.yaml`` (see ``settings.example.yaml``);
credentials can be supplied through ``JIRA_EMAIL`` / ``JIRA_API_TOKEN`` /
``SENDGRID_API_KEY`` instead of living in the file.
"""

from jira_score.app import main

if __name__ == "__main__":
    raise SystemExit(main())
