"""
Tests for the in-memory workspace store.
"""

import unittest

from pydantic import ValidationError

from knowledge_hub.models import BlockKind, CardItem, CommandItem, LinkItem, NoteItem
from knowledge_hub.store import WorkspaceStore, create_initial_state


class TestWorkspaceStore(unittest.TestCase):
    """Test CRUD operations and change notification."""

    def setUp(self):
        self.store = WorkspaceStore()
        self.changes = 0

        def count():
            self.changes += 1

        self.store.subscribe(count)
        self.workspace = self.store.add_workspace(name="Personal", icon="🏠")
        self.notes = self.store.add_block(BlockKind.NOTES, self.workspace.id)

    def test_every_mutation_notifies(self):
        self.assertEqual(self.changes, 2)
        item = self.store.add_item(self.notes.id, name="A")
        self.store.update_item(item.id, content="x")
        self.store.delete_item(item.id)
        self.assertEqual(self.changes, 5)

    def test_reads_do_not_notify(self):
        self.store.get_block(self.notes.id)
        self.store.get_items_by_block(self.notes.id)
        self.store.get_blocks_by_workspace(self.workspace.id)
        self.assertEqual(self.changes, 2)

    def test_unsubscribe(self):
        store = WorkspaceStore()
        calls = []
        unsubscribe = store.subscribe(lambda: calls.append(1))
        store.add_workspace()
        unsubscribe()
        store.add_workspace()
        self.assertEqual(len(calls), 1)

    def test_block_defaults_follow_kind(self):
        links = self.store.add_block(BlockKind.LINKS, self.workspace.id)
        self.assertEqual((links.name, links.icon, links.color), ("Links", "link", "#06b6d4"))
        self.assertEqual(self.notes.name, "Notes")
        self.assertEqual(
            [b.id for b in self.store.get_blocks_by_workspace(self.workspace.id)],
            [self.notes.id, links.id],
        )

    def test_item_type_follows_block_kind(self):
        cards = self.store.add_block(BlockKind.CARDS, self.workspace.id)
        links = self.store.add_block(BlockKind.LINKS, self.workspace.id)
        commands = self.store.add_block(BlockKind.COMMANDS, self.workspace.id)

        self.assertIsInstance(self.store.add_item(self.notes.id), NoteItem)
        self.assertIsInstance(self.store.add_item(cards.id), CardItem)
        self.assertIsInstance(self.store.add_item(links.id), LinkItem)
        self.assertIsInstance(self.store.add_item(commands.id), CommandItem)

    def test_unknown_block_raises(self):
        with self.assertRaises(KeyError):
            self.store.add_item("missing")

    def test_block_kind_is_immutable(self):
        with self.assertRaises(ValueError):
            self.store.update_block(self.notes.id, kind=BlockKind.CARDS)
        renamed = self.store.update_block(self.notes.id, name="Journal", kind="notes")
        self.assertEqual(renamed.name, "Journal")
        self.assertEqual(self.store.get_block(self.notes.id).name, "Journal")

    def test_update_bumps_timestamp(self):
        item = self.store.add_item(self.notes.id, name="A")
        updated = self.store.update_item(item.id, name="B")
        self.assertGreaterEqual(updated.updated_at, item.updated_at)
        self.assertEqual(updated.created_at, item.created_at)

    def test_update_workspace(self):
        updated = self.store.update_workspace(self.workspace.id, name="Home")
        self.assertEqual(updated.name, "Home")
        self.assertEqual(len(updated.blocks), 1)
        with self.assertRaises(ValueError):
            self.store.update_workspace(self.workspace.id, blocks=[])

    def test_delete_workspace_cascades(self):
        self.store.add_item(self.notes.id, name="A")
        other = self.store.add_workspace(name="Other")
        other_block = self.store.add_block(BlockKind.CARDS, other.id)
        self.store.add_item(other_block.id, title="Keep")

        self.store.delete_workspace(self.workspace.id)

        self.assertIsNone(self.store.get_block(self.notes.id))
        self.assertEqual([i.block_id for i in self.store.items], [other_block.id])

    def test_delete_block_cascades(self):
        self.store.add_item(self.notes.id, name="A")
        self.store.delete_block(self.notes.id)
        self.assertEqual(self.store.items, [])
        self.assertEqual(self.store.get_blocks_by_workspace(self.workspace.id), [])

    def test_delete_folder_removes_descendants(self):
        top = self.store.add_item(self.notes.id, name="Top", variant="folder")
        mid = self.store.add_item(self.notes.id, name="Mid", variant="folder", parent_id=top.id)
        self.store.add_item(self.notes.id, name="Leaf", parent_id=mid.id)
        keep = self.store.add_item(self.notes.id, name="Keep")

        self.store.delete_item(top.id)

        self.assertEqual([i.id for i in self.store.items], [keep.id])

    def test_folder_cannot_carry_body(self):
        with self.assertRaises(ValidationError):
            self.store.add_item(self.notes.id, name="F", variant="folder", content="text")

    def test_reparenting_into_own_subtree_is_rejected(self):
        top = self.store.add_item(self.notes.id, name="Top", variant="folder")
        mid = self.store.add_item(self.notes.id, name="Mid", variant="folder", parent_id=top.id)
        low = self.store.add_item(self.notes.id, name="Low", variant="folder", parent_id=mid.id)

        for new_parent in (top.id, low.id):
            with self.subTest(new_parent=new_parent):
                with self.assertRaises(ValueError):
                    self.store.update_item(top.id, parent_id=new_parent)
        self.assertIsNone(self.store.get_item(top.id).parent_id)

    def test_reparenting_elsewhere_is_allowed(self):
        a = self.store.add_item(self.notes.id, name="A", variant="folder")
        b = self.store.add_item(self.notes.id, name="B", variant="folder")
        moved = self.store.update_item(a.id, parent_id=b.id)
        self.assertEqual(moved.parent_id, b.id)
        self.assertIsNone(self.store.update_item(a.id, parent_id=None).parent_id)

    def test_item_identity_fields_are_fixed(self):
        item = self.store.add_item(self.notes.id, name="A")
        with self.assertRaises(ValueError):
            self.store.update_item(item.id, block_id="elsewhere")

    def test_increment_copy_count(self):
        commands = self.store.add_block(BlockKind.COMMANDS, self.workspace.id)
        item = self.store.add_item(commands.id, command="ls")
        self.store.increment_copy_count(item.id)
        self.assertEqual(self.store.increment_copy_count(item.id).copy_count, 2)


class TestInitialState(unittest.TestCase):

    def test_sample_workspace(self):
        store = create_initial_state()

        self.assertEqual([w.name for w in store.workspaces], ["Personal"])
        blocks = store.workspaces[0].blocks
        self.assertEqual([(b.name, b.kind) for b in blocks], [
            ("Notes", BlockKind.NOTES),
            ("Tasks", BlockKind.CARDS),
            ("Bookmarks", BlockKind.LINKS),
        ])
        self.assertEqual(store.get_item("welcome").tags, ["welcome"])
