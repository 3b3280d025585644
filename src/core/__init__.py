"""Core domain package for landwatch.

Core contains trigger detection, verification, and cycle scheduling logic
without any HTTP, Telegram, or storage-specific code, keeping the business
logic portable.
"""
