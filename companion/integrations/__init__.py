"""External course platforms - GitHub and Canvas REST clients"""
