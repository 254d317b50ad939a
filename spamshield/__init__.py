# spamshield/__init__.py
"""
SpamShield: ядро принятия решений антиспама для форм и комментариев.
"""

__version__ = "2.1.0"
