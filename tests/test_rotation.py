import threading
import unittest
from collections import Counter

from patient.core.personas import PERSONAS, PersonaConfig, get_persona
from patient.core.rotation import FallbackRotation
from patient.errors import InvalidPersona


def make_persona(pool=("A", "B", "C"), persona_id="demo"):
    return PersonaConfig(id=persona_id, name="Demo", instructions="Be brief.", fallback_pool=pool)


class TestFallbackRotation(unittest.TestCase):
    def test_lines_rotate_and_wrap(self):
        rotation = FallbackRotation()
        persona = make_persona()
        lines = [rotation.next_line(persona) for _ in range(4)]
        self.assertEqual(lines, ["A", "B", "C", "A"])
        self.assertEqual(rotation.position("demo"), 1)

    def test_personas_have_independent_cursors(self):
        rotation = FallbackRotation()
        first = make_persona(persona_id="first")
        second = make_persona(pool=("x", "y"), persona_id="second")
        self.assertEqual(rotation.next_line(first), "A")
        self.assertEqual(rotation.next_line(first), "B")
        self.assertEqual(rotation.next_line(second), "x")
        self.assertEqual(rotation.position("first"), 2)
        self.assertEqual(rotation.position("second"), 1)

    def test_reset_starts_over(self):
        rotation = FallbackRotation()
        persona = make_persona()
        rotation.next_line(persona)
        rotation.reset()
        self.assertEqual(rotation.next_line(persona), "A")

    def test_concurrent_callers_never_share_a_cursor(self):
        rotation = FallbackRotation()
        persona = make_persona(pool=tuple("abcdefg"))
        seen = []
        seen_lock = threading.Lock()

        def worker():
            for _ in range(100):
                line = rotation.next_line(persona)
                with seen_lock:
                    seen.append(line)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        counts = Counter(seen)
        self.assertEqual(len(seen), 800)
        # 800 = 7 * 114 + 2: the first two lines come round once more
        self.assertEqual(counts["a"], 115)
        self.assertEqual(counts["b"], 115)
        for line in "cdefg":
            self.assertEqual(counts[line], 114)
        self.assertEqual(rotation.position(persona.id), 800 % 7)


class TestPersonas(unittest.TestCase):
    def test_known_personas(self):
        self.assertEqual(get_persona("experienced").name, "Sam")
        self.assertEqual(get_persona("new").name, "Aisha")
        for persona in PERSONAS.values():
            self.assertTrue(persona.fallback_pool)

    def test_unknown_persona(self):
        with self.assertRaises(InvalidPersona):
            get_persona("veteran")
        with self.assertRaises(InvalidPersona):
            get_persona("")

    def test_empty_pool_rejected(self):
        with self.assertRaises(ValueError):
            make_persona(pool=())


if __name__ == "__main__":
    unittest.main()
