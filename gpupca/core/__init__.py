"""Backend dispatch, configuration and result containers."""
