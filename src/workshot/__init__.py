"""workshot — platform-specific social outputs from before/after photos.

Crop each photo to a platform's panel size (optionally guided by Gemini),
composite labeled panels and a logo onto one canvas, and optionally render
a crossfade GIF. Platform specs are declared in platforms.yaml.
"""
