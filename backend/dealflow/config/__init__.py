from .settings import Settings, get_settings, get_workflow_config, get_config_for_environment

__all__ = ['Settings', 'get_settings', 'get_workflow_config', 'get_config_for_environment']
