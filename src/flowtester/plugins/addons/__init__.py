"""Built-in addon actions.

Addons are accessed via AddonRegistry, not direct imports:

    registry = AddonRegistry()
    registry.register_builtin_addons()
    action = registry.get_action("addon:log-value")
"""
