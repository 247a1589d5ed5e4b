import json
import random

import pytest

from core.domain import BudgetRow, Category, Transaction
from core.functional import Nothing
from core.transforms import (
    BudgetValidationError,
    activity_by_category,
    build_budget,
    build_category_tree,
    edit_budget,
    find_child,
    load_seed,
    tree_totals,
    validate_month,
)


def make_tx(id, cat_id, amount, date="2026-10-05"):
    return Transaction(id=id, user_id="u1", category_id=cat_id, amount=amount, date=date)


def make_row(cat_id, assigned, month="2026-10", id=0):
    return BudgetRow(id=id, user_id="u1", category_id=cat_id, month=month, assigned=assigned, actual=0)


def make_categories():
    flat = (
        Category(1, "Food", "expense"),
        Category(2, "Groceries", "expense", 1),
        Category(3, "Restaurants", "expense", 1),
        Category(4, "Transport", "expense"),
        Category(5, "Fuel", "expense", 4),
    )
    return build_category_tree(flat)


def make_food_tree():
    rows = (make_row(2, 500), make_row(3, 300))
    trans = (make_tx(1, 2, 471), make_tx(2, 3, 237))
    return build_budget(make_categories(), rows, trans)


def test_build_category_tree_keeps_order():
    tree = make_categories()
    assert [p.name for p in tree] == ["Food", "Transport"]
    assert [c.name for c in tree[0].children] == ["Groceries", "Restaurants"]
    assert tree[1].children[0].parent_id == 4


def test_build_budget_food_example():
    food = make_food_tree()[0]
    assert food.budget == 800
    assert food.activity == 708
    assert food.remaining == 92
    groceries, restaurants = food.children
    assert (groceries.budget, groceries.activity, groceries.remaining) == (500, 471, 29)
    assert (restaurants.budget, restaurants.activity, restaurants.remaining) == (300, 237, 63)


def test_build_budget_missing_row_and_activity_are_zero():
    transport = make_food_tree()[1]
    fuel = transport.children[0]
    assert fuel.budget == 0
    assert fuel.activity == 0
    assert fuel.remaining == 0
    assert transport.budget == 0


def test_parent_totals_equal_sum_of_children():
    rows = (make_row(2, 1000), make_row(3, 250), make_row(5, 9000))
    trans = tuple(make_tx(i, cat, amt) for i, (cat, amt) in enumerate(
        [(2, 300), (2, 45), (3, 999), (5, 120), (5, -20)]
    ))
    for parent in build_budget(make_categories(), rows, trans):
        assert parent.budget == sum(c.budget for c in parent.children)
        assert parent.activity == sum(c.activity for c in parent.children)
        assert parent.remaining == parent.budget - parent.activity
        for c in parent.children:
            assert c.remaining == c.budget - c.activity


def test_activity_sum_is_order_independent():
    trans = [make_tx(i, 2 if i % 2 else 3, (i * 37) % 101 - 50) for i in range(40)]
    expected = build_budget(make_categories(), (), trans)
    shuffled = list(trans)
    random.Random(7).shuffle(shuffled)
    assert build_budget(make_categories(), (), shuffled) == expected
    assert build_budget(make_categories(), (), reversed(trans)) == expected


def test_activity_by_category_sums_signed_amounts():
    totals = activity_by_category([make_tx(1, 2, 100), make_tx(2, 2, -30), make_tx(3, 3, 5)])
    assert totals == {2: 70, 3: 5}


def test_duplicate_budget_rows_last_wins(caplog):
    rows = (make_row(2, 100, id=1), make_row(2, 400, id=2))
    with caplog.at_level("WARNING"):
        tree = build_budget(make_categories(), rows, ())
    assert tree[0].children[0].budget == 400
    assert "Duplicate budget rows" in caplog.text


def test_build_budget_is_pure():
    cats = make_categories()
    rows = (make_row(2, 500),)
    trans = (make_tx(1, 2, 10),)
    assert build_budget(cats, rows, trans) == build_budget(cats, rows, trans)


def test_edit_budget_example():
    tree = edit_budget(make_food_tree(), 1, 2, 600)
    food = tree[0]
    groceries, restaurants = food.children
    assert groceries.budget == 600
    assert groceries.remaining == 129
    assert food.budget == 900
    assert food.activity == 708
    assert food.remaining == 192
    assert restaurants == make_food_tree()[0].children[1]


def test_edit_budget_leaves_other_parents_alone():
    before = make_food_tree()
    after = edit_budget(before, 1, 2, 600)
    assert after[1] == before[1]
    assert before[0].children[0].budget == 500


def test_edit_budget_unknown_ids_keep_tree():
    before = make_food_tree()
    assert edit_budget(before, 99, 2, 10) == before
    assert edit_budget(before, 1, 99, 10) == before


def test_edit_budget_rejects_negative():
    with pytest.raises(BudgetValidationError):
        edit_budget(make_food_tree(), 1, 2, -1)


def test_edit_budget_status_flips_when_over():
    tree = edit_budget(make_food_tree(), 1, 2, 400)
    assert tree[0].children[0].status == "over"
    assert tree[0].children[1].status == "under"


def test_find_child():
    tree = make_food_tree()
    assert find_child(tree, 1, 3).get_or_else(None).name == "Restaurants"
    assert find_child(tree, 4, 3) == Nothing()


def test_tree_totals():
    assert tree_totals(make_food_tree()) == {"budget": 800, "activity": 708, "remaining": 92}


def test_tree_totals_follow_edits():
    tree = edit_budget(make_food_tree(), 1, 3, 100)
    assert tree_totals(tree) == {"budget": 600, "activity": 708, "remaining": -108}


@pytest.mark.parametrize("month", ["2026-10", "1999-01"])
def test_validate_month_ok(month):
    assert validate_month(month) == month


@pytest.mark.parametrize("month", ["2026-13", "2026-1", "October", "", None])
def test_validate_month_rejects(month):
    with pytest.raises(BudgetValidationError):
        validate_month(month)


def test_load_seed_converts_to_cents(tmp_path):
    seed = {
        "user_id": "u9",
        "categories": [
            {"id": 1, "name": "Food", "type": "expense", "parent_id": None},
            {"id": 2, "name": "Groceries", "type": "expense", "parent_id": 1},
        ],
        "budgets": [{"id": 1, "category_id": 2, "month": "2026-10", "assigned": "500.00"}],
        "transactions": [
            {"id": 1, "category_id": 2, "amount": 12.345, "date": "2026-10-02"},
        ],
    }
    path = tmp_path / "seed.json"
    path.write_text(json.dumps(seed), encoding="utf-8")

    categories, budgets, transactions = load_seed(str(path))
    assert len(categories) == 2
    assert categories[1].parent_id == 1
    assert budgets[0].assigned == 50000
    assert budgets[0].actual == 0
    assert budgets[0].user_id == "u9"
    assert transactions[0].amount == 1235
    assert transactions[0].month == "2026-10"
