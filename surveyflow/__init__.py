"""surveyflow: questionnaire structure parsing, response mapping, and survey statistics."""

__version__ = "0.3.0"
