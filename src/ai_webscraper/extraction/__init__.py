"""AI extraction of schema fields from page content.

Sub-modules:
- ``base``     - ``Extractor`` ABC with caching and provider error mapping
- ``_openai``  - OpenAI chat-completions extractor
- ``_gemini``  - Google Gemini ``generateContent`` extractor
- ``factory``  - ``create_extractor()`` resolving a model name to an extractor
- ``prompts``  - prompt text, schema description and content truncation
- ``cache``    - ``ResponseCache`` keyed by content, schema, provider and options
"""
