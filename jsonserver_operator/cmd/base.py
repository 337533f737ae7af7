"""
Base class for the jsonserver-operator subcommands
"""

# Standard
import abc
import argparse


class CmdBase(abc.ABC):
    """A subcommand of the main entrypoint. Subclasses set name and use their
    module docstring as the help text.
    """

    name: str = ""

    def add_subparser(
        self,
        subparsers: argparse._SubParsersAction,
    ) -> argparse.ArgumentParser:
        """Register this command with the main parser's subparsers and return
        its parser
        """
        assert self.name, f"{self.__class__.__name__} has no command name"
        parser = subparsers.add_parser(self.name, help=self.__doc__)
        self.add_arguments(parser)
        return parser

    def add_arguments(self, parser: argparse.ArgumentParser):
        """Add command specific arguments. Commands without any leave this
        alone.
        """

    @abc.abstractmethod
    def cmd(self, args: argparse.Namespace):
        """Execute the command with the parsed arguments"""
