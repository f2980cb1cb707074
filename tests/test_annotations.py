import pytest

from pagecraft.core.annotations import (
    AnnotationElement,
    AnnotationType,
    CircleElement,
    ImageElement,
    LineElement,
    OverlayStore,
    RectangleElement,
    TextElement,
    ToolMode,
    UndoRedoStack,
)


def _rect(store, page=0, **kwargs):
    return RectangleElement(id=store.next_id(), page_index=page, x=10, y=10, **kwargs)


def test_tool_modes_map_to_element_types():
    assert ToolMode.SELECT.annotation_type is None
    assert ToolMode.ADD_TEXT.annotation_type is AnnotationType.TEXT
    assert ToolMode.ADD_CIRCLE.annotation_type is AnnotationType.CIRCLE
    assert ToolMode("line") is ToolMode.ADD_LINE


def test_element_defaults_and_heights():
    text = TextElement(id="t", page_index=0, x=0, y=0)
    rect = RectangleElement(id="r", page_index=0, x=0, y=0)
    circle = CircleElement(id="c", page_index=0, x=0, y=0, radius=25)
    line = LineElement(id="l", page_index=0, x=0, y=0)

    assert text.element_height == 16
    assert rect.element_height == 60
    assert circle.element_height == 50
    assert circle.center == (25, 25)
    assert line.element_height == 0
    assert line.end == (150, 0)


@pytest.mark.parametrize("factory", [
    lambda: TextElement(id="t", page_index=0, x=0, y=0, font_size=0),
    lambda: TextElement(id="t", page_index=0, x=0, y=0, color="blue"),
    lambda: RectangleElement(id="r", page_index=0, x=0, y=0, opacity=1.5),
    lambda: RectangleElement(id="r", page_index=-1, x=0, y=0),
    lambda: CircleElement(id="c", page_index=0, x=0, y=0, radius=0),
    lambda: LineElement(id="l", page_index=0, x=0, y=0, stroke_width=-1),
    lambda: ImageElement(id="i", page_index=0, x=0, y=0, width=0),
])
def test_invalid_elements_rejected(factory):
    with pytest.raises(ValueError):
        factory()


def test_with_changes_keeps_identity():
    rect = RectangleElement(id="r", page_index=1, x=0, y=0)
    moved = rect.with_changes(x=50, fill_color="#00ff00")

    assert moved.id == "r" and moved.page_index == 1
    assert moved.x == 50 and moved.fill_color == "#00ff00"
    assert rect.x == 0

    with pytest.raises(ValueError):
        rect.with_changes(page_index=2)
    with pytest.raises(ValueError):
        rect.with_changes(id="other")
    with pytest.raises(TypeError):
        rect.with_changes(radius=3)


def test_hit_testing():
    circle = CircleElement(id="c", page_index=0, x=0, y=0, radius=10)
    assert circle.contains(10, 10)
    assert not circle.contains(0, 0)

    line = LineElement(id="l", page_index=0, x=0, y=0, dx=100, dy=0)
    assert line.contains(50, 2)
    assert not line.contains(50, 20)


def test_dict_round_trip_keeps_variant(png_bytes):
    image = ImageElement(id="i", page_index=2, x=5, y=6, data=png_bytes, width=20, height=10)
    restored = AnnotationElement.from_dict(image.to_dict())

    assert isinstance(restored, ImageElement)
    assert restored == image
    assert isinstance(image.to_dict()['data'], str)


def test_data_uri_decoding(png_bytes):
    image = ImageElement(id="i", page_index=0, x=0, y=0, data=png_bytes)
    data, mime = ImageElement.decode_data_uri(image.data_uri)

    assert data == png_bytes
    assert mime == "image/png"
    with pytest.raises(ValueError):
        ImageElement.decode_data_uri("not-a-uri")


def test_store_keeps_insertion_order_and_unique_ids():
    store = OverlayStore()
    first = store.append(_rect(store))
    second = store.append(_rect(store))
    other_page = store.append(_rect(store, page=1))

    assert [e.id for e in store.list_for_page(0)] == [first.id, second.id]
    assert len({first.id, second.id, other_page.id}) == 3
    assert store.count() == 3
    assert store.pages_with_elements() == [0, 1]
    assert store.find(other_page.id) == other_page

    with pytest.raises(ValueError):
        store.append(RectangleElement(id=first.id, page_index=1, x=0, y=0))


def test_store_update_and_remove_are_page_scoped():
    store = OverlayStore()
    element = store.append(_rect(store))

    assert store.update_by_id(1, element.id, {'x': 99}) is None
    updated = store.update_by_id(0, element.id, {'x': 99})
    assert updated.x == 99
    assert store.list_for_page(0) == [updated]

    assert store.remove_by_id(1, element.id) is None
    assert store.remove_by_id(0, element.id) == updated
    assert store.list_for_page(0) == []
    assert store.remove_by_id(0, element.id) is None


def test_element_at_returns_top_most():
    store = OverlayStore()
    bottom = store.append(_rect(store))
    top = store.append(_rect(store))

    assert store.element_at(0, 20, 20) == top
    store.remove_by_id(0, top.id)
    assert store.element_at(0, 20, 20) == bottom
    assert store.element_at(0, 500, 500) is None


def test_undo_redo_restores_snapshots():
    store = OverlayStore()
    element = store.append(_rect(store))
    store.update_by_id(0, element.id, {'x': 40})

    assert store.undo()
    assert store.list_for_page(0)[0].x == 10
    assert store.undo()
    assert store.list_for_page(0) == []
    assert not store.undo()

    assert store.redo()
    assert store.redo()
    assert store.list_for_page(0)[0].x == 40
    assert not store.can_redo()


def test_new_mutation_clears_redo():
    store = OverlayStore()
    store.append(_rect(store))
    store.undo()
    store.append(_rect(store))
    assert not store.can_redo()


def test_ids_not_reused_after_clear():
    store = OverlayStore()
    first = store.next_id()
    store.clear_all()
    assert store.next_id() != first


def test_load_elements_is_one_undo_step():
    store = OverlayStore()
    store.append(_rect(store))
    store.load_elements([
        TextElement(id="a", page_index=0, x=0, y=0),
        TextElement(id="b", page_index=2, x=0, y=0),
    ])

    assert store.count() == 2
    assert store.count(2) == 1
    store.undo()
    assert store.count() == 1

    with pytest.raises(ValueError):
        store.load_elements([TextElement(id="a", page_index=0, x=0, y=0)] * 2)


def test_history_is_bounded():
    stack = UndoRedoStack(max_size=3)
    for i in range(5):
        stack.push_state({0: (i,)})
    assert len(stack.undo_stack) == 3
    assert stack.undo({})[0] == (4,)
