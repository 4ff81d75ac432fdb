"""Configuration module for the onboarding admin application."""
from .settings import AppConfig, load_settings

__all__ = ["AppConfig", "load_settings"]
