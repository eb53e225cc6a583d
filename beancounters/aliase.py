import click
from click.core import Context

CMD_ALIAS_MAP = {
    "ls": "list",
    "rm": "delete",
    "new": "add",
    "edit": "update",
}


class AliasedGroup(click.Group):
    """Command group accepting short aliases and unambiguous prefixes of sub-commands"""

    def get_command(self, ctx: Context, cmd_name: str):
        cmd_name = CMD_ALIAS_MAP.get(cmd_name, cmd_name)
        command = super().get_command(ctx, cmd_name)
        if command is not None:
            return command
        candidates = sorted(
            name for name in self.list_commands(ctx) if name.startswith(cmd_name)
        )
        if len(candidates) > 1:
            ctx.fail(f"Ambiguous command {cmd_name}: {', '.join(candidates)}")
        if candidates:
            return super().get_command(ctx, candidates[0])
        return None

    def resolve_command(self, ctx: Context, args: list[str]):
        # report the canonical name instead of the alias or prefix typed
        _, command, args = super().resolve_command(ctx, args)
        if command is None:
            return None, None, args
        return command.name, command, args
