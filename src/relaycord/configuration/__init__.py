"""
Configuration for Relaycord.

This package handles static and file-based configuration:

- **app_configuration**: YAML application settings with typed defaults
- **languages**: Supported languages and DeepL code mapping
- **subscriptions**: Guild and personal tiers with their monthly limits
"""
