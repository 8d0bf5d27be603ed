"""
Config Loader - Load and merge configuration from multiple sources.

This module loads configuration from YAML files, .env files and
environment variables, with proper precedence.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import load_dotenv

from autobrowse.config.settings import Settings

# Vendor-named environment variables mapped onto settings paths.
# They only fill values that are still unset after normal loading.
VENDOR_ENV_FALLBACKS = {
    "STEEL_API_KEY": ("backend", "steel_api_key"),
    "BROWSERBASE_API_KEY": ("backend", "browserbase_api_key"),
    "BROWSERBASE_PROJECT_ID": ("backend", "browserbase_project_id"),
    "BRAVE_SEARCH_API_KEY": ("search", "brave_api_key"),
    "OPENAI_API_KEY": ("llm", "api_key"),
}


class ConfigLoader:
    """
    Configuration loader that merges settings from multiple sources.
    
    Priority order (highest to lowest):
    1. Explicit overrides passed to load()
    2. Environment variables (AUTOBROWSE__*, then vendor names)
    3. Config file
    4. Default values
    """
    
    DEFAULT_CONFIG_PATHS = [
        Path("autobrowse.yaml"),
        Path("autobrowse.yml"),
        Path("config/autobrowse.yaml"),
        Path.home() / ".config" / "autobrowse" / "config.yaml",
    ]
    
    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """
        Initialize the config loader.
        
        Args:
            config_path: Optional explicit path to config file
        """
        self.config_path = Path(config_path) if config_path else None
        self._file_config: Dict[str, Any] = {}
    
    def find_config_file(self) -> Optional[Path]:
        """Return the first existing config file, or None."""
        if self.config_path and self.config_path.exists():
            return self.config_path
        
        for path in self.DEFAULT_CONFIG_PATHS:
            if path.exists():
                return path
        
        return None
    
    def load_yaml_config(self, path: Path) -> Dict[str, Any]:
        """
        Load configuration from a YAML file.
        
        Args:
            path: Path to the YAML file
            
        Returns:
            Configuration dictionary (empty for an empty file)
        """
        with open(path, "r") as f:
            config = yaml.safe_load(f)
            return config if config else {}
    
    @staticmethod
    def vendor_overrides(settings: Settings) -> Dict[str, Any]:
        """Collect vendor env values for settings that are still unset."""
        overrides: Dict[str, Any] = {}
        for env_name, (section, field_name) in VENDOR_ENV_FALLBACKS.items():
            value = os.environ.get(env_name)
            if not value:
                continue
            if getattr(getattr(settings, section), field_name) is not None:
                continue
            overrides.setdefault(section, {})[field_name] = value
        return overrides
    
    def load(
        self,
        env_file: Optional[Union[str, Path]] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> Settings:
        """
        Load settings from all sources.
        
        Args:
            env_file: Optional path to .env file
            overrides: Optional dictionary of values to override
            
        Returns:
            Complete Settings instance
        """
        if env_file:
            load_dotenv(env_file)
        else:
            for env_path in [Path(".env"), Path(".env.local")]:
                if env_path.exists():
                    load_dotenv(env_path)
                    break
        
        config_file = self.find_config_file()
        if config_file:
            self._file_config = self.load_yaml_config(config_file)
        
        # Pydantic reads AUTOBROWSE__* env vars on construction
        settings = Settings(**self._file_config)
        
        vendor = self.vendor_overrides(settings)
        if vendor:
            settings = settings.merge_with(vendor)
        
        if overrides:
            settings = settings.merge_with(overrides)
        
        return settings


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    env_file: Optional[Union[str, Path]] = None,
    **overrides: Any,
) -> Settings:
    """
    Convenience function to load configuration.
    
    Args:
        config_path: Optional path to config file
        env_file: Optional path to .env file
        **overrides: Keyword arguments to override settings
        
    Returns:
        Complete Settings instance
        
    Example:
        >>> settings = load_config()
        >>> settings = load_config(config_path="autobrowse.yaml")
        >>> settings = load_config(backend={"preference": "local"})
    """
    loader = ConfigLoader(config_path)
    return loader.load(env_file=env_file, overrides=overrides if overrides else None)
