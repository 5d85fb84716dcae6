"""
Adapters - Outer surfaces over the mixer core.

    cli       - binaural-mixer command line
    playback  - replay signals through sounddevice
"""
