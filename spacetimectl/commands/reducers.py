"""spacetimectl - describe and call commands"""

from typing import Optional, Tuple

import click

from spacetimectl.commands.modules import ModuleCommand
from spacetimectl.models import CallReducerRequest
from spacetimectl.ui_components import reducers_table


class DescribeCommand(ModuleCommand):
    def execute(self, module_name: Optional[str], as_identity: Optional[str]) -> None:
        module_name = self.resolve_module(module_name)
        result = self.run_async(self.service.describe_module(module_name, as_identity))

        if result.result.has_error and not result.has_entity_structure:
            self.exit_with_error(f"Failed to describe {module_name}", result.result.error)

        if self.json_output:
            self.output_json(
                {
                    "module_name": module_name,
                    "reducers": result.structure.reducers,
                    "tables": result.structure.tables,
                }
            )
            return

        self.show_header(title="Describe", details={"Module": module_name})
        if not result.has_entity_structure:
            self.print_warning("No reducers found")
        else:
            self.console.print(reducers_table(result.structure.reducers))
        if result.structure.tables:
            self.print_dim(f"Tables: {', '.join(result.structure.tables)}")


class CallCommand(ModuleCommand):
    """Call a reducer, checking its arguments against `describe` first."""

    async def _call(self, request: CallReducerRequest, check: bool):
        reducer = None
        if check:
            described = await self.service.describe_module(request.module_name, request.as_identity)
            if described.has_entity_structure:
                reducer = described.structure.get_reducer(request.reducer_name)
                if reducer is None:
                    return None, described
        return await self.service.call_reducer(request, reducer), None

    def execute(
        self,
        reducer_name: str,
        args: Tuple[str, ...],
        module_name: Optional[str],
        as_identity: Optional[str],
        check: bool,
    ) -> None:
        request = CallReducerRequest(
            module_name=self.resolve_module(module_name),
            reducer_name=reducer_name,
            args=" ".join(args),
            as_identity=as_identity,
        )
        result, described = self.run_async(self._call(request, check))

        if result is None:
            known = ", ".join(r.name for r in described.structure.reducers)
            self.exit_with_error(
                f"Unknown reducer {reducer_name} on {request.module_name}",
                f"Known reducers: {known}",
            )
        if result.has_error:
            self.exit_with_error(f"Failed to call {reducer_name}", result.error)

        if self.json_output:
            self.output_json({"called": reducer_name, "output": result.output})
            return
        self.print_success(f"Called {reducer_name} on {request.module_name}")
        if result.output.strip():
            self.print_dim(result.output.strip())


@click.command()
@click.argument("module_name", required=False)
@click.option("--as-identity", help="Identity to describe the module as")
@click.pass_obj
def describe(obj, module_name, as_identity):
    """
    List reducers and tables of a published module
    """
    DescribeCommand.from_context(obj).run(module_name=module_name, as_identity=as_identity)


@click.command()
@click.argument("reducer_name")
@click.argument("args", nargs=-1)
@click.option("-m", "--module", "module_name", help="Module (defaults to the last publish)")
@click.option("--as-identity", help="Identity to call the reducer as")
@click.option("--no-check", is_flag=True, help="Skip argument checks against describe")
@click.pass_obj
def call(obj, reducer_name, args, module_name, as_identity, no_check):
    """
    Call a reducer

    \b
    Examples:
      spacetimectl call send_message '"hello"'
      spacetimectl call -m chat set_name '"bob"'
    """
    CallCommand.from_context(obj).run(
        reducer_name=reducer_name,
        args=args,
        module_name=module_name,
        as_identity=as_identity,
        check=not no_check,
    )
