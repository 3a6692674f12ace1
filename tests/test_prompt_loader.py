from shopping_assistant.config import BASE_DIR
from shopping_assistant.prompt_loader import load_prompt, load_system_instruction


def test_packaged_persona_loads():
    text = load_system_instruction(BASE_DIR / "prompts")
    assert "Amazie" in text
    assert "searchProducts" in text
    assert not text.startswith("\ufeff")


def test_bom_and_bad_bytes_are_tolerated(tmp_path):
    path = tmp_path / "prompt.txt"
    path.write_bytes(b"\xef\xbb\xbf  Hello \xff world \n")
    assert load_prompt(path) == "Hello  world"
