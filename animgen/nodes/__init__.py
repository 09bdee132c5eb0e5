"""Pipeline steps operating on :class:`animgen.types.RunState`."""
