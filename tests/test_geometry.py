import random

from mondrian import (
    EMPTY_RECT,
    Rect,
    rect_contains,
    rect_inset,
    rect_intersection,
    rect_overlaps,
)


def random_rect(rng: random.Random, span: int = 60) -> Rect:
    x0 = rng.randrange(span)
    y0 = rng.randrange(span)
    return Rect(x0, y0, x0 + rng.randrange(1, span), y0 + rng.randrange(1, span))


class TestIntersection:
    def test_overlapping(self):
        a = Rect(0, 0, 10, 10)
        b = Rect(5, 5, 15, 15)
        assert rect_intersection(a, b) == Rect(5, 5, 10, 10)

    def test_disjoint_is_empty(self):
        assert rect_intersection(Rect(0, 0, 10, 10), Rect(20, 20, 30, 30)) == EMPTY_RECT

    def test_touching_edge_is_empty(self):
        inter = rect_intersection(Rect(0, 0, 10, 10), Rect(10, 0, 20, 10))
        assert inter.empty

    def test_contained(self):
        outer = Rect(0, 0, 100, 100)
        inner = Rect(10, 20, 30, 40)
        assert rect_intersection(outer, inner) == inner

    def test_symmetric(self):
        rng = random.Random(7)
        for _ in range(500):
            a = random_rect(rng)
            b = random_rect(rng)
            assert rect_intersection(a, b) == rect_intersection(b, a)


class TestOverlaps:
    def test_overlapping_pair(self):
        assert rect_overlaps(Rect(0, 0, 10, 10), Rect(5, 5, 15, 15))

    def test_shared_edge_and_corner(self):
        a = Rect(0, 0, 10, 10)
        assert not rect_overlaps(a, Rect(10, 0, 20, 10))
        assert not rect_overlaps(a, Rect(0, 10, 10, 20))
        assert not rect_overlaps(a, Rect(10, 10, 20, 20))

    def test_never_overlaps_itself(self):
        a = Rect(3, 4, 50, 60)
        assert not rect_overlaps(a, a)
        assert not rect_overlaps(a, Rect(3, 4, 50, 60))

    def test_zero_area_never_overlaps(self):
        line = Rect(5, 0, 5, 10)
        assert not rect_overlaps(line, Rect(0, 0, 10, 10))
        assert not rect_overlaps(Rect(0, 0, 10, 10), line)
        assert not rect_overlaps(EMPTY_RECT, EMPTY_RECT)

    def test_symmetric(self):
        rng = random.Random(11)
        for _ in range(500):
            a = random_rect(rng)
            b = random_rect(rng)
            assert rect_overlaps(a, b) == rect_overlaps(b, a)

    def test_agrees_with_intersection(self):
        rng = random.Random(12)
        for _ in range(500):
            a = random_rect(rng)
            b = random_rect(rng)
            if a != b:
                assert rect_overlaps(a, b) == (not rect_intersection(a, b).empty)


class TestContains:
    def test_self(self):
        rng = random.Random(3)
        for _ in range(100):
            a = random_rect(rng)
            assert rect_contains(a, a)

    def test_inner_and_outer(self):
        outer = Rect(0, 0, 100, 100)
        inner = Rect(0, 0, 50, 100)
        assert rect_contains(outer, inner)
        assert not rect_contains(inner, outer)

    def test_partial_overlap_is_not_containment(self):
        a = Rect(0, 0, 10, 10)
        b = Rect(5, 5, 15, 15)
        assert not rect_contains(a, b)
        assert not rect_contains(b, a)

    def test_empty_is_contained_anywhere(self):
        assert rect_contains(Rect(0, 0, 1, 1), EMPTY_RECT)


class TestInset:
    def test_shrinks_every_side(self):
        assert rect_inset(Rect(0, 0, 100, 50), 2) == Rect(2, 2, 98, 48)

    def test_exact_fit_is_empty(self):
        r = rect_inset(Rect(0, 0, 4, 40), 2)
        assert r.empty
        assert r.y0 == 2 and r.y1 == 38

    def test_too_small_collapses_to_centre(self):
        r = rect_inset(Rect(10, 10, 13, 13), 2)
        assert r.empty
        assert r == Rect(11, 11, 11, 11)

    def test_rect_properties(self):
        r = Rect(2, 3, 12, 8)
        assert (r.w, r.h, r.area) == (10, 5, 50)
        assert r.box == (2, 3, 12, 8)
        assert not r.empty
