import threading
from typing import Any, List

from mdns_reconciler.threading.throwing_thread import ThrowingThread


class TestThrowingThread:
    def setup_method(self) -> None:
        self.error_info: List[Exception] = []
        self.callback_called_event = threading.Event()

    def on_error_callback(self, e: Exception) -> None:
        self.error_info.append(e)
        self.callback_called_event.set()

    def target_function_normal(
        self,
        shared_list: List[str],
        an_arg: str,
        a_kwarg: str = "default_kwarg",
    ) -> None:
        shared_list.append(f"arg: {an_arg}, kwarg: {a_kwarg}")

    def target_function_raises(self, *args: Any, **kwargs: Any) -> None:
        raise ValueError("Test ValueError from target")

    def test_target_execution_and_args_kwargs_passing(self) -> None:
        shared_list: List[str] = []

        thread = ThrowingThread(
            target=self.target_function_normal,
            on_error_cb=self.on_error_callback,
            args=(shared_list, "test_arg"),
            kwargs={"a_kwarg": "test_kwarg"},
        )
        thread.start()
        thread.join(timeout=1.0)

        assert not thread.is_alive()
        assert shared_list == ["arg: test_arg, kwarg: test_kwarg"]
        assert not self.error_info
        assert not self.callback_called_event.is_set()

    def test_exception_is_passed_to_callback(self) -> None:
        thread = ThrowingThread(
            target=self.target_function_raises,
            on_error_cb=self.on_error_callback,
            name="failing-thread",
        )
        thread.start()

        assert self.callback_called_event.wait(timeout=1.0)
        thread.join(timeout=1.0)

        assert len(self.error_info) == 1
        assert isinstance(self.error_info[0], ValueError)
        assert str(self.error_info[0]) == "Test ValueError from target"

    def test_is_daemon_by_default(self) -> None:
        thread = ThrowingThread(
            target=lambda: None, on_error_cb=self.on_error_callback
        )
        assert thread.daemon

        thread = ThrowingThread(
            target=lambda: None,
            on_error_cb=self.on_error_callback,
            daemon=False,
        )
        assert not thread.daemon

    def test_name_is_applied(self) -> None:
        thread = ThrowingThread(
            target=lambda: None,
            on_error_cb=self.on_error_callback,
            name="mdns-worker",
        )
        assert thread.name == "mdns-worker"
