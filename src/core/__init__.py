"""Core infrastructure package for shared application functionality.

This package provides the foundational components used across the service
and the client library:

- **config**: Centralized configuration management with environment support
- **constants**: Time units and dashboard link prefixes
- **exceptions**: Structured exception hierarchy with error codes
- **logging**: Loguru sink configuration
- **types**: Type aliases for better code clarity
"""
