"""Instruction template for the prompt expansion call."""

EXPANSION_TEMPLATE = """
Create a prompt which can act as a prompt template where I put the original prompt and it can modify it according to my intentions so that the final modified prompt is more detailed. You can expand certain terms or keywords.
----------
PROMPT: {prompt}.
MODIFIED PROMPT: """

EXPANSION_MAX_TOKENS = 500
EXPANSION_TEMPERATURE = 0.7


def render_expansion_prompt(prompt: str) -> str:
    # str.replace keeps literal braces in user content intact.
    return EXPANSION_TEMPLATE.replace("{prompt}", prompt)
