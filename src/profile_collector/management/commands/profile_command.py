"""Run another management command under the profile collector.

The wrapped command is profiled like a request: sampling applies, and the
profile is stored once the command has returned or raised.

Usage:
    python manage.py profile_command <command> [args...]
    python manage.py profile_command check --deploy
"""

import argparse
import sys
import typing as t
from pathlib import Path

import structlog
from django.core.management import call_command
from django.core.management.base import BaseCommand

from profile_collector.ambient import AmbientContext
from profile_collector.collector import get_collector

logger = structlog.get_logger(__name__)


class Command(BaseCommand):
    help = "Run a management command and store a profile of it if it is sampled."

    def add_arguments(self, parser: t.Any) -> None:
        """Add CLI arguments."""
        parser.add_argument("command_name", help="Management command to run.")
        parser.add_argument("command_args", nargs=argparse.REMAINDER, help="Arguments for the command.")

    def handle(self, *args: t.Any, **kwargs: t.Any) -> None:
        """Start the collector, run the command, then finish the profile."""
        command_name: str = kwargs["command_name"]
        command_args: list[str] = kwargs["command_args"]

        collector = get_collector()
        argv = [Path(sys.argv[0]).name, command_name, *command_args]
        started = False
        try:
            started = collector.start(AmbientContext.from_argv(argv))
        except Exception:
            logger.exception("profile-collector could not start profiling", command=command_name)

        if started and kwargs["verbosity"] > 1:
            self.stdout.write(self.style.NOTICE(f"Profiling '{command_name}'"))

        try:
            call_command(command_name, *command_args, stdout=self.stdout, stderr=self.stderr)
        finally:
            collector.finish()
