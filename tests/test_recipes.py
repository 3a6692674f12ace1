from shopping_assistant.recipes import RecipeBook


def test_find_by_name_alias_and_containment(recipes):
    assert len(recipes) == 2
    assert recipes.find("green curry").dish == "Green Curry"
    assert recipes.find("แกงเขียวหวาน").dish == "Green Curry"
    assert recipes.find("How do I make Pad Thai?").dish == "Pad Thai"
    assert recipes.find("") is None
    assert recipes.find("sushi") is None


def test_missing_file_gives_empty_book(tmp_path):
    book = RecipeBook.from_file(tmp_path / "none.json")
    assert len(book) == 0
    assert book.find("Pad Thai") is None
