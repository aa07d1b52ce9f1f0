"""Send one prompt to Gemini with the production system prompt and print the parsed recipe."""
import json
import sys

from src.app.config import get_settings
from src.services.gemini_client import GeminiClient
from src.services.recipe_parser import first_candidate_text, parse_recipe

DEFAULT_PROMPT = "A quick high-protein vegetarian dinner for two, under 30 minutes."


def main() -> None:
    settings = get_settings()
    if settings.GEMINI_API_KEY is None:
        raise SystemExit("GEMINI_API_KEY is not set. Check your .env file.")

    prompt = " ".join(sys.argv[1:]) or DEFAULT_PROMPT
    client = GeminiClient(settings.GEMINI_API_KEY.get_secret_value(), model_name=settings.GEMINI_MODEL)

    print(f"Sending prompt to {client.model_name}...")
    response = client.generate(prompt, system_instruction=client.load_system_prompt())

    text = first_candidate_text(response)
    recipe = parse_recipe(text)
    if recipe is None:
        print("\n--- Raw response (no recipe found) ---")
        print(text)
        return

    print("\n--- Parsed recipe ---")
    print(json.dumps(recipe, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
