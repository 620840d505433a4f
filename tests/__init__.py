"""Test suite for Mockup Studio.

- test_image_utils.py: data URL codec
- test_gemini_service.py: Gemini client wrapper, with the SDK mocked
- test_workflow.py: the three-step state machine
- test_app.py: Flask endpoints
- test_config.py: environment settings
"""
