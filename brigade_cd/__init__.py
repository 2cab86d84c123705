"""brigade-cd - GitHub and custom-resource event gateway for Brigade."""
__version__ = "0.1.0"
