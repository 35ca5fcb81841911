"""spacetimectl - publish, generate and logs commands"""

from pathlib import Path
from typing import Optional

import click

from spacetimectl.base import BaseCommand
from spacetimectl.cancellation import CancelToken
from spacetimectl.models import GenerateRequest, PublishRequest
from spacetimectl.parsers import format_server_logs
from spacetimectl.state import PublishedModule
from spacetimectl.ui_components import PUBLISH_ERROR_HINTS, WASM_OPT_HINT


class ModuleCommand(BaseCommand):
    """Commands that act on a module, defaulting to the last published one."""

    def last_published(self) -> Optional[PublishedModule]:
        return self.publish_cache.load()

    def resolve_module(self, module_name: Optional[str]) -> str:
        if module_name:
            return module_name
        last = self.last_published()
        if last is None:
            self.exit_with_error("No module given and nothing has been published yet")
        return last.module_name


class PublishCommand(ModuleCommand):
    """Publish a server module and remember it for later commands."""

    async def _publish(self, request: PublishRequest, timeout: Optional[float]):
        token = CancelToken.with_timeout(timeout) if timeout else None
        try:
            return await self.service.publish(request, cancel_token=token)
        finally:
            if token is not None:
                token.dispose()

    def execute(
        self,
        module_name: str,
        project_path: str,
        clear: bool,
        debug: bool,
        timeout: Optional[float],
    ) -> None:
        request = PublishRequest(
            module_name=module_name,
            project_path=str(Path(project_path).expanduser()),
            clear_data=clear,
            debug_mode=debug,
        )
        self.show_header(
            title="Publish", details={"Module": module_name, "Project": request.project_path}
        )
        outcome = self.run_async(self._publish(request, timeout))

        if outcome.result.is_cancelled:
            self.exit_with_error(f"Publish cancelled after {timeout}s")

        if not outcome.is_success:
            if self.json_output:
                self.output_json(
                    {
                        "published": False,
                        "error_kind": outcome.error_kind,
                        "error": outcome.result.error.strip(),
                    },
                    exit_code=1,
                )
            self.print_error(f"Failed to publish {module_name}")
            self.print_dim(PUBLISH_ERROR_HINTS[outcome.error_kind])
            raise SystemExit(1)

        published = self.publish_cache.save(outcome)

        if self.json_output:
            self.output_json(
                {
                    "published": True,
                    "module_name": published.module_name,
                    "host": published.host,
                    "database_address": published.database_address,
                    "published_at": published.published_at,
                    "optimized": published.is_optimized,
                }
            )
            return

        self.print_success(f"Published {module_name} to {outcome.uploaded_host or 'server'}")
        if outcome.database_address:
            self.print_dim(f"Address: {outcome.database_address}")
        if not outcome.is_optimized:
            self.print_warning(WASM_OPT_HINT)


class GenerateCommand(ModuleCommand):
    """Generate client bindings for a server module."""

    def execute(
        self,
        project_path: Optional[str],
        out_dir: Optional[str],
        language: Optional[str],
        keep_outdated: bool,
    ) -> None:
        if not project_path:
            last = self.last_published()
            if last is None:
                self.exit_with_error("No --project-path given and nothing has been published yet")
            project_path = last.project_path

        request = GenerateRequest(
            project_path=str(Path(project_path).expanduser()),
            out_dir=str(Path(out_dir or Path.cwd() / self.settings.autogen_dir_name).expanduser()),
            language=language or self.settings.client_language,
            delete_outdated_files=not keep_outdated,
        )
        self.show_header(
            title="Generate",
            details={"Project": request.project_path, "Out dir": request.out_dir},
        )
        outcome = self.run_async(self.service.generate_client_files(request))

        if not outcome.is_success:
            self.exit_with_error("Failed to generate client files", outcome.result.error)

        if self.json_output:
            self.output_json({"generated": True, "out_dir": request.out_dir, "language": request.language})
            return
        self.print_success(f"Generated {request.language} client files in {request.out_dir}")


class LogsCommand(ModuleCommand):
    def execute(self, module_name: Optional[str]) -> None:
        module_name = self.resolve_module(module_name)
        result = self.run_async(self.service.get_logs(module_name))

        if result.has_error:
            self.exit_with_error(f"Failed to get logs for {module_name}", result.error)

        if self.json_output:
            self.output_json({"module_name": module_name, "logs": result.output})
            return

        self.show_header(title="Logs", details={"Module": module_name})
        self.console.print(format_server_logs(result.output.rstrip("\n")))


@click.command()
@click.argument("module_name")
@click.argument("project_path", type=click.Path(file_okay=False))
@click.option("--clear", is_flag=True, help="Clear the database before publishing")
@click.option("--debug", is_flag=True, help="Build the module in debug mode")
@click.option("--timeout", type=float, help="Cancel the publish after this many seconds")
@click.pass_obj
def publish(obj, module_name, project_path, clear, debug, timeout):
    """
    Build and publish a server module

    \b
    Examples:
      spacetimectl publish chat ./server
      spacetimectl publish chat ./server --clear
    """
    PublishCommand.from_context(obj).run(
        module_name=module_name,
        project_path=project_path,
        clear=clear,
        debug=debug,
        timeout=timeout,
    )


@click.command()
@click.option("--project-path", help="Server module project (defaults to the last publish)")
@click.option("--out-dir", help="Output directory for generated files")
@click.option("--lang", "language", help="Client language (default: csharp)")
@click.option("--keep-outdated", is_flag=True, help="Keep files no longer generated")
@click.pass_obj
def generate(obj, project_path, out_dir, language, keep_outdated):
    """
    Generate client code from a server module
    """
    GenerateCommand.from_context(obj).run(
        project_path=project_path,
        out_dir=out_dir,
        language=language,
        keep_outdated=keep_outdated,
    )


@click.command()
@click.argument("module_name", required=False)
@click.pass_obj
def logs(obj, module_name):
    """
    Show server logs for a module (defaults to the last publish)
    """
    LogsCommand.from_context(obj).run(module_name=module_name)


class ForgetCommand(ModuleCommand):
    """Drop the remembered last publish."""

    def execute(self) -> None:
        last = self.last_published()
        self.publish_cache.clear()

        if self.json_output:
            self.output_json({"forgotten": last.module_name if last else None})
            return
        if last is None:
            self.print_dim("Nothing has been published yet")
            return
        self.print_success(f"Forgot last publish of {last.module_name}")


@click.command()
@click.pass_obj
def forget(obj):
    """
    Forget the last published module
    """
    ForgetCommand.from_context(obj).run()
