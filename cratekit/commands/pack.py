"""`pack` command: build a package by wrapping an external pack tool.

Responsibilities:
- Parse positional manifest path and `key=value` manifest properties.
- Describe the pack tool's flag syntax as an `ArgumentTable`.
- Prepare the output directory and run the tool with the compiled arguments.
"""

from __future__ import annotations

from ..config import CrateConfiguration
from ..errors import CommandError
from ..filesystem.options import DEFAULT_OPTIONS, FileOperationOptions
from ..filesystem.resilient import ResilientFileSystem
from ..parsing import parse_key_value_argument
from ..telemetry.logger import OperationLogger
from .arguments import ArgumentDescriptor, ArgumentTable
from .compiler import ArgumentCompiler
from .runner import ExternalToolRunner, ToolResult

DEFAULT_PACK_TOOL = "nuget"
_MANIFEST_EXTENSIONS = (".nuspec",)


def pack_argument_table() -> ArgumentTable:
    """Return the argument table describing the pack tool's command line."""

    return ArgumentTable(
        {
            "_pack_": ArgumentDescriptor(option="pack", required=True),
            "input": ArgumentDescriptor(quote_value=True, use_value_only=True),
            "version": ArgumentDescriptor(option="-Version "),
            "output_directory": ArgumentDescriptor(option="-OutputDirectory ", quote_value=True),
            "pack_command.properties": ArgumentDescriptor(option="-Properties ", quote_value=True),
            "verbose": ArgumentDescriptor(option="-Verbosity detailed"),
            "_non_interactive_": ArgumentDescriptor(option="-NonInteractive", required=True),
        }
    )


class PackCommand:
    """Populate pack configuration and invoke the wrapped pack tool."""

    command_names = ("pack",)

    def __init__(
        self,
        file_system: ResilientFileSystem,
        tool: str = DEFAULT_PACK_TOOL,
        compiler: ArgumentCompiler | None = None,
        logger: OperationLogger | None = None,
        options: FileOperationOptions = DEFAULT_OPTIONS,
    ) -> None:
        self.file_system = file_system
        self.options = options
        self.runner = ExternalToolRunner(tool, file_system)
        self.compiler = compiler or ArgumentCompiler()
        self.logger = logger or file_system.logger

    def parse_additional_arguments(
        self,
        unparsed_arguments: list[str],
        configuration: CrateConfiguration,
    ) -> None:
        """Consume positional arguments.

        The first argument without `=` is the manifest path. `key=value` arguments
        become manifest properties. Keys keep the first spelling given and are
        compared case-insensitively; later duplicates are logged and ignored.
        """

        properties = configuration.pack_command.properties
        spellings = {existing.casefold(): existing for existing in properties}
        for argument in unparsed_arguments:
            pair = parse_key_value_argument(argument)
            if pair is None:
                if not configuration.input:
                    configuration.input = argument
                continue

            key, value = pair
            stored = spellings.get(key.casefold())
            if stored is not None:
                self.logger.warn(
                    f"A value for '{stored}' has already been added with the value "
                    f"'{properties[stored]}'. Ignoring {stored}='{value}'."
                )
                continue
            spellings[key.casefold()] = key
            properties[key] = value

    def validate(self, configuration: CrateConfiguration) -> None:
        """Resolve the manifest path and reject missing manifests."""

        if configuration.input:
            if not self.file_system.file_exists(configuration.input):
                raise CommandError(
                    f"Manifest file `{configuration.input}` was not found.",
                    command="pack",
                    hint="Pass an existing `.nuspec` path.",
                )
            return

        manifests = self.file_system.get_files_with_extensions(
            self.file_system.get_current_directory(),
            _MANIFEST_EXTENSIONS,
        )
        if len(manifests) != 1:
            raise CommandError(
                "No manifest path was given and the current directory does not "
                f"contain exactly one `.nuspec` file (found {len(manifests)}).",
                command="pack",
                hint="Pass the manifest path as the first argument.",
            )
        configuration.input = manifests[0]

    def argument_table(self) -> ArgumentTable:
        return pack_argument_table()

    def build_arguments(self, configuration: CrateConfiguration) -> str:
        return self.compiler.compile(configuration, self.argument_table())

    def dry_run(self, configuration: CrateConfiguration) -> str:
        """Return the command line that `run` would execute, without running it."""

        command_line = self.runner.command_line(self.build_arguments(configuration))
        self.logger.log_command("pack", "dry_run")
        return command_line

    def run(self, configuration: CrateConfiguration) -> ToolResult:
        """Validate, prepare the output directory, and run the pack tool."""

        self.validate(configuration)
        if configuration.output_directory:
            self.file_system.create_directory(configuration.output_directory, self.options)
        self.logger.log_command("pack", "start")
        result = self.runner.run(self.build_arguments(configuration), command="pack")
        self.logger.log_command("pack", "complete", exit_code=result.exit_code)
        return result
