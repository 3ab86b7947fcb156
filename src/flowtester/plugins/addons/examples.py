# src/flowtester/plugins/addons/examples.py
"""Addon actions shipped with flowtester.

    addon:log-value     Writes ``value`` to the run log, or the message
                        payload when ``value`` is absent.
    addon:match-regex   Passes when the message payload contains a match
                        for the pattern in ``value``.
"""

import re

from flowtester.plugins.base import AddonContext, BaseAddonAction


class LogValueAction(BaseAddonAction):
    """Writes a value to the run log."""

    name = "addon:log-value"

    def execute(self, ctx: AddonContext) -> bool:
        value = ctx.action.get("value") if ctx.action is not None else None
        if value is None and ctx.msg is not None:
            value = ctx.msg.get("payload")
        ctx.write_log(value if isinstance(value, str) else repr(value))
        return True


class MatchRegexAction(BaseAddonAction):
    """Passes when the payload matches a regular expression."""

    name = "addon:match-regex"

    def execute(self, ctx: AddonContext) -> bool:
        if ctx.msg is None or ctx.action is None:
            self._log.debug("nothing_to_match", node_id=ctx.node_id)
            return False
        payload = ctx.msg.get("payload")
        if not isinstance(payload, str):
            return False
        return re.search(str(ctx.action.get("value", "")), payload) is not None
