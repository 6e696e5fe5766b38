from muco.model import Model, SharedData


def test_new_model_is_empty():
    assert Model().facts == {}


def test_models_do_not_share_facts():
    first = Model()
    second = Model()
    first.facts[(1, 2, 3)] = b"data"
    assert second.facts == {}


def test_models_with_same_facts_are_equal():
    model = Model({(0, 1, 2): b"x"})
    assert model.facts == {(0, 1, 2): b"x"}
    assert (model == Model({(0, 1, 2): b"x"})) is True
    assert (model == Model({(0, 1, 2): b"y"})) is False


def test_shared_data_starts_empty_and_independent():
    first = SharedData()
    second = SharedData()
    first.data_owners[(0, 0, 0)] = 5
    first.model.facts[(0, 0, 0)] = b"y"
    assert second.data_owners == {}
    assert second.model.facts == {}
    assert first.model.facts[(0, 0, 0)] == b"y"