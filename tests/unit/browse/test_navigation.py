"""Tests for the scanning/browsing navigation state machine.

Covers message-driven transitions, clamped cursor movement, and selection
restoration when ascending out of a directory.
"""

from __future__ import annotations

import unittest
from unittest import mock

from lazydu.browse import Action, BrowsingState, BrowsingView, NavigationController, QuitState, ScanningView
from lazydu.config import ScanConfig, SharedColumn, SortColumn, SortOrder
from lazydu.model import NodeArena, NodeKind, StatsSnapshot, UsageTree, aggregate_tree
from lazydu.scan import ScanComplete, ScanFailed, ScanProgress

NAME_ASC = ScanConfig(sort_column=SortColumn.NAME, sort_order=SortOrder.ASC)


def build_tree() -> UsageTree:
    """/r with dirs a (x, y, z), b (empty) and files c, d, e."""
    arena = NodeArena()
    root = arena.create(NodeKind.DIRECTORY, "/r")

    def add(parent, kind, name, blocks=0):
        node = arena.create(kind, name, apparent_size=blocks * 512, allocated_blocks=blocks)
        node.parent = parent.id
        parent.children.append(node.id)
        return node

    a = add(root, NodeKind.DIRECTORY, "a")
    for name in ("x", "y", "z"):
        add(a, NodeKind.FILE, name, blocks=8)
    add(root, NodeKind.DIRECTORY, "b")
    for name in ("c", "d", "e"):
        add(root, NodeKind.FILE, name, blocks=2)
    tree = UsageTree(arena, root.id, "/r")
    aggregate_tree(tree)
    return tree


def browsing(controller: NavigationController) -> BrowsingState:
    state = controller.state
    assert isinstance(state, BrowsingState)
    return state


class ScanningTransitionsTests(unittest.TestCase):
    def test_progress_updates_scanning_view(self) -> None:
        controller = NavigationController(ScanConfig(), "/r")
        snapshot = StatsSnapshot(total_entries=12, current_path="/r/a")

        self.assertTrue(controller.handle_message(ScanProgress(snapshot)))

        view = controller.view()
        self.assertIsInstance(view, ScanningView)
        assert isinstance(view, ScanningView)
        self.assertEqual(view.progress, snapshot)
        self.assertEqual(view.root_path, "/r")

    def test_complete_enters_browsing_at_root(self) -> None:
        controller = NavigationController(NAME_ASC, "/r")
        tree = build_tree()

        controller.handle_message(ScanComplete(tree, StatsSnapshot(errors=2, complete=True)))

        state = browsing(controller)
        self.assertEqual(state.current, tree.root_id)
        self.assertEqual(state.selected_index, 0)
        self.assertEqual(controller.errors, 2)
        self.assertEqual(controller.selected_node().name, "a")

    def test_failure_quits_with_error(self) -> None:
        controller = NavigationController(ScanConfig(), "/missing")

        controller.handle_message(ScanFailed("cannot access '/missing': No such file or directory"))

        self.assertTrue(controller.is_quit)
        self.assertIn("No such file", controller.error)
        self.assertIsNone(controller.view())

    def test_quit_while_scanning_cancels(self) -> None:
        on_cancel = mock.Mock()
        controller = NavigationController(ScanConfig(), "/r", on_cancel=on_cancel)

        self.assertTrue(controller.handle_action(Action.QUIT))

        on_cancel.assert_called_once_with()
        self.assertEqual(controller.state, QuitState(cancelled=True))
        self.assertIsNone(controller.error)

    def test_browse_actions_are_ignored_while_scanning(self) -> None:
        controller = NavigationController(ScanConfig(), "/r")
        self.assertFalse(controller.handle_action(Action.DOWN))
        self.assertEqual(controller.rows(), [])
        self.assertIsNone(controller.selected_node())

    def test_messages_after_browsing_are_ignored(self) -> None:
        controller = NavigationController.for_tree(build_tree(), NAME_ASC)
        self.assertFalse(controller.handle_message(ScanFailed("late")))
        self.assertFalse(controller.is_quit)


class BrowsingMovementTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tree = build_tree()
        self.controller = NavigationController.for_tree(self.tree, NAME_ASC, page_size=2)

    def test_rows_follow_sort_options(self) -> None:
        self.assertEqual([node.name for node in self.controller.rows()], ["a", "b", "c", "d", "e"])

    def test_down_at_last_row_is_a_no_op(self) -> None:
        self.controller.handle_action(Action.END)
        state = browsing(self.controller)
        self.assertEqual(state.selected_index, 4)

        self.assertFalse(self.controller.handle_action(Action.DOWN))
        self.assertEqual(state.selected_index, 4)

    def test_up_at_first_row_is_a_no_op(self) -> None:
        self.assertFalse(self.controller.handle_action(Action.UP))
        self.assertEqual(browsing(self.controller).selected_index, 0)

    def test_paging_clamps_and_scrolls(self) -> None:
        state = browsing(self.controller)
        self.controller.handle_action(Action.PAGE_DOWN)
        self.assertEqual(state.selected_index, 2)
        self.assertEqual(state.scroll_top, 1)
        self.controller.handle_action(Action.PAGE_DOWN)
        self.controller.handle_action(Action.PAGE_DOWN)
        self.assertEqual(state.selected_index, 4)
        self.assertEqual(state.scroll_top, 3)
        self.controller.handle_action(Action.HOME)
        self.assertEqual((state.selected_index, state.scroll_top), (0, 0))

    def test_descend_and_ascend_restore_selection(self) -> None:
        state = browsing(self.controller)
        self.assertTrue(self.controller.handle_action(Action.DESCEND))
        self.assertEqual(self.tree.node(state.current).name, "a")
        self.assertEqual([node.name for node in self.controller.rows()], ["x", "y", "z"])
        self.controller.handle_action(Action.DOWN)

        self.assertTrue(self.controller.handle_action(Action.ASCEND))
        self.assertEqual(state.current, self.tree.root_id)
        self.assertEqual(state.selected_index, 0)
        self.assertEqual(self.controller.selected_node().name, "a")

    def test_ascend_restores_non_zero_index(self) -> None:
        controller = NavigationController.for_tree(self.tree, NAME_ASC)
        controller.handle_action(Action.REVERSE_SORT)
        controller.handle_action(Action.END)
        self.assertEqual(controller.selected_node().name, "a")

        controller.handle_action(Action.DESCEND)
        controller.handle_action(Action.END)
        controller.handle_action(Action.ASCEND)

        self.assertEqual(browsing(controller).selected_index, 4)
        self.assertEqual(controller.selected_node().name, "a")

    def test_descend_on_file_or_empty_directory_is_a_no_op(self) -> None:
        state = browsing(self.controller)
        self.controller.handle_action(Action.DOWN)
        self.assertEqual(self.controller.selected_node().name, "b")
        self.assertFalse(self.controller.handle_action(Action.DESCEND))
        self.controller.handle_action(Action.DOWN)
        self.assertEqual(self.controller.selected_node().name, "c")
        self.assertFalse(self.controller.handle_action(Action.DESCEND))
        self.assertEqual(state.current, self.tree.root_id)

    def test_ascend_at_root_is_a_no_op(self) -> None:
        self.assertFalse(self.controller.handle_action(Action.ASCEND))

    def test_quit_from_browsing(self) -> None:
        self.assertTrue(self.controller.handle_action(Action.QUIT))
        self.assertEqual(self.controller.state, QuitState())

    def test_set_page_size_keeps_selection_visible(self) -> None:
        controller = NavigationController.for_tree(self.tree, NAME_ASC, page_size=10)
        controller.handle_action(Action.END)
        controller.set_page_size(2)
        state = browsing(controller)
        self.assertEqual(state.scroll_top, 3)


class BrowsingViewTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tree = build_tree()
        self.on_sort_change = mock.Mock()
        self.controller = NavigationController.for_tree(
            self.tree,
            NAME_ASC,
            errors=1,
            on_sort_change=self.on_sort_change,
        )

    def test_view_snapshot(self) -> None:
        view = self.controller.view()
        assert isinstance(view, BrowsingView)
        self.assertEqual(view.current.name, "/r")
        self.assertEqual(view.selected.name, "a")
        self.assertEqual(view.errors, 1)
        self.assertFalse(view.show_help)

    def test_sort_change_keeps_selected_node_and_notifies(self) -> None:
        self.controller.handle_action(Action.DOWN)
        self.controller.handle_action(Action.DOWN)
        self.assertEqual(self.controller.selected_node().name, "c")

        self.controller.handle_action(Action.SORT_BLOCKS)

        self.assertEqual(self.controller.selected_node().name, "c")
        self.assertEqual(self.controller.rows()[0].name, "a")
        self.on_sort_change.assert_called_once_with(SortColumn.BLOCKS, SortOrder.DESC)

    def test_reverse_sort_flips_order(self) -> None:
        self.controller.handle_action(Action.REVERSE_SORT)
        self.assertEqual([node.name for node in self.controller.rows()], ["e", "d", "c", "b", "a"])
        self.on_sort_change.assert_called_once_with(SortColumn.NAME, SortOrder.DESC)

    def test_dirs_first_toggle_does_not_persist(self) -> None:
        self.controller.handle_action(Action.TOGGLE_DIRS_FIRST)
        self.assertTrue(browsing(self.controller).sort.dirs_first)
        self.on_sort_change.assert_not_called()

    def test_view_toggles(self) -> None:
        self.controller.handle_action(Action.TOGGLE_HELP)
        self.controller.handle_action(Action.TOGGLE_APPARENT_SIZE)
        view = self.controller.view()
        assert isinstance(view, BrowsingView)
        self.assertTrue(view.show_help)
        self.assertTrue(view.apparent_size)

    def test_column_toggles_start_from_config(self) -> None:
        config = ScanConfig(shared_column=SharedColumn.UNIQUE, show_percent=True)
        controller = NavigationController.for_tree(self.tree, config)
        state = browsing(controller)
        self.assertIs(state.columns.shared, SharedColumn.UNIQUE)
        self.assertTrue(state.columns.percent)

        controller.handle_action(Action.CYCLE_SHARED)
        controller.handle_action(Action.TOGGLE_PERCENT)
        controller.handle_action(Action.TOGGLE_MTIME)

        view = controller.view()
        assert isinstance(view, BrowsingView)
        self.assertIs(view.columns.shared, SharedColumn.OFF)
        self.assertFalse(view.columns.percent)
        self.assertTrue(view.columns.mtime)

    def test_tree_is_not_modified_by_navigation(self) -> None:
        before = [(node.id, node.kind, list(node.children)) for node in self.tree.arena]
        for action in (Action.DESCEND, Action.END, Action.SORT_SIZE, Action.ASCEND, Action.TOGGLE_HIDDEN):
            self.controller.handle_action(action)
        after = [(node.id, node.kind, list(node.children)) for node in self.tree.arena]
        self.assertEqual(before, after)



class ConfirmQuitTests(unittest.TestCase):
    def setUp(self) -> None:
        config = ScanConfig(sort_column=SortColumn.NAME, sort_order=SortOrder.ASC, confirm_quit=True)
        self.controller = NavigationController.for_tree(build_tree(), config)

    def test_quit_asks_first(self) -> None:
        self.assertTrue(self.controller.handle_action(Action.QUIT))
        self.assertFalse(self.controller.is_quit)
        view = self.controller.view()
        assert isinstance(view, BrowsingView)
        self.assertTrue(view.confirming_quit)

        self.assertTrue(self.controller.handle_action(Action.CONFIRM))
        self.assertEqual(self.controller.state, QuitState())

    def test_second_quit_confirms(self) -> None:
        self.controller.handle_action(Action.QUIT)
        self.controller.handle_action(Action.QUIT)
        self.assertTrue(self.controller.is_quit)

    def test_any_other_action_dismisses_without_acting(self) -> None:
        self.controller.handle_action(Action.QUIT)
        self.assertTrue(self.controller.handle_action(Action.DOWN))
        state = browsing(self.controller)
        self.assertFalse(state.confirming_quit)
        self.assertEqual(state.selected_index, 0)

        self.controller.handle_action(Action.QUIT)
        self.controller.handle_action(Action.DISMISS)
        self.assertFalse(browsing(self.controller).confirming_quit)

    def test_confirm_without_prompt_does_nothing(self) -> None:
        self.assertFalse(self.controller.handle_action(Action.CONFIRM))
        self.assertFalse(self.controller.is_quit)


if __name__ == "__main__":
    unittest.main()
