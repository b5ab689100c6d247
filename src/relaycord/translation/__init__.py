"""
Machine translation for Relaycord.

- **translation_provider**: Provider interface and the DeepL client
- **translation_gateway**: Concurrent all-or-nothing fan-out to target languages
"""
