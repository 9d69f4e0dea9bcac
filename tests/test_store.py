import unittest

from evenchess.actions import CloseMenu, OpenMenu
from evenchess.state.contracts import SessionState
from evenchess.state.store import Store


class StoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = Store(SessionState())

    def test_dispatch_notifies_with_new_and_previous_state(self) -> None:
        seen = []
        self.store.subscribe(lambda state, prev: seen.append((state.phase, prev.phase)))
        self.store.dispatch(OpenMenu())
        self.assertEqual(seen, [("menu", "idle")])
        self.assertEqual(self.store.get_state().phase, "menu")

    def test_no_op_dispatch_does_not_notify(self) -> None:
        seen = []
        self.store.subscribe(lambda state, prev: seen.append(state))
        self.store.dispatch(CloseMenu())
        self.assertEqual(seen, [])

    def test_failing_listener_does_not_break_the_others(self) -> None:
        def boom(state, prev):
            raise RuntimeError("listener failure")

        seen = []
        self.store.subscribe(boom)
        self.store.subscribe(lambda state, prev: seen.append(state.phase))

        with self.assertLogs("evenchess.state.store", level="ERROR"):
            self.store.dispatch(OpenMenu())

        self.assertEqual(seen, ["menu"])
        self.assertEqual(self.store.get_state().phase, "menu")

    def test_unsubscribe_is_idempotent(self) -> None:
        seen = []
        unsubscribe = self.store.subscribe(lambda state, prev: seen.append(state.phase))
        unsubscribe()
        unsubscribe()
        self.store.dispatch(OpenMenu())
        self.assertEqual(seen, [])

    def test_unsubscribing_inside_a_listener_still_runs_the_rest(self) -> None:
        seen = []
        unsubscribe_first = None

        def first(state, prev):
            seen.append("first")
            unsubscribe_first()

        unsubscribe_first = self.store.subscribe(first)
        self.store.subscribe(lambda state, prev: seen.append("second"))

        self.store.dispatch(OpenMenu())
        self.store.dispatch(CloseMenu())

        self.assertEqual(seen, ["first", "second", "second"])

    def test_custom_reducer(self) -> None:
        store = Store(SessionState(), reducer=lambda state, action: state)
        seen = []
        store.subscribe(lambda state, prev: seen.append(state))
        store.dispatch(OpenMenu())
        self.assertEqual(seen, [])


if __name__ == "__main__":
    unittest.main()
