"""Text-level helpers: token estimation, glossary, language metadata."""
