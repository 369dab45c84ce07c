import pytest

from playdeck.core.listeners import PLAYLIST, STATE, TIME, ListenerRegistry


class TestListenerRegistry:
    def test_notify_reaches_every_listener_of_the_channel(self, recorder):
        reg = ListenerRegistry()
        a, b, other = recorder(), recorder(), recorder()
        reg.add(STATE, a)
        reg.add(STATE, b)
        reg.add(TIME, other)

        reg.notify(STATE, "payload")

        assert a.calls == ["payload"]
        assert b.calls == ["payload"]
        assert other.calls == []

    def test_disposer_removes_only_its_registration(self, recorder):
        reg = ListenerRegistry()
        cb = recorder()
        dispose_first = reg.add(STATE, cb)
        reg.add(STATE, cb)

        dispose_first()
        reg.notify(STATE, 1)

        assert cb.calls == [1]
        assert reg.count(STATE) == 1

    def test_disposer_is_idempotent(self, recorder):
        reg = ListenerRegistry()
        keep = recorder()
        dispose = reg.add(TIME, recorder())
        reg.add(TIME, keep)

        dispose()
        dispose()

        assert reg.count(TIME) == 1
        reg.notify(TIME, "t")
        assert keep.calls == ["t"]

    def test_disposer_after_clear_does_nothing(self, recorder):
        reg = ListenerRegistry()
        dispose = reg.add(PLAYLIST, recorder())
        reg.clear()
        dispose()
        assert reg.count(PLAYLIST) == 0

    def test_listener_can_unsubscribe_itself_during_broadcast(self, recorder):
        reg = ListenerRegistry()
        later = recorder()
        calls = []

        def once(payload):
            calls.append(payload)
            dispose()

        dispose = reg.add(STATE, once)
        reg.add(STATE, later)

        reg.notify(STATE, 1)
        reg.notify(STATE, 2)

        assert calls == [1]
        assert later.calls == [1, 2]

    def test_listener_added_during_broadcast_waits_for_next_one(self, recorder):
        reg = ListenerRegistry()
        late = recorder()

        def adder(_payload):
            reg.add(STATE, late)

        dispose = reg.add(STATE, adder)
        reg.notify(STATE, "first")
        dispose()
        reg.notify(STATE, "second")

        assert late.calls == ["second"]

    def test_failing_listener_does_not_stop_the_others(self, recorder):
        reg = ListenerRegistry()
        after = recorder()

        def broken(_payload):
            raise RuntimeError("boom")

        reg.add(TIME, broken)
        reg.add(TIME, after)
        reg.notify(TIME, 5)

        assert after.calls == [5]

    def test_unknown_channel_is_rejected(self, recorder):
        reg = ListenerRegistry()
        with pytest.raises(ValueError):
            reg.add("volume", recorder())
        with pytest.raises(ValueError):
            reg.notify("volume", None)

    def test_custom_channels(self, recorder):
        reg = ListenerRegistry(channels=("volume",))
        cb = recorder()
        reg.add("volume", cb)
        reg.notify("volume", 0.5)
        assert cb.calls == [0.5]
