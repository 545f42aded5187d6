# Khutba Client Source Code Package
"""
This package contains the components of the khutba client:

- khutba_api: Retrying client for the khutba generation API with sample fallback
- khutba_models: Sermon record and error kinds
- sample_sermons: Bundled sample sermons used when generation fails
- notifications: User-facing failure notifications
- connectivity: Offline detection
- khutba_config: YAML/env configuration and logging setup
- khutba_cli: Command-line front end
"""
