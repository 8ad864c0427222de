"""Service providers — grouped container setup.

A provider bundles related bindings::

    class MailServiceProvider(ServiceProvider):
        def register(self) -> None:
            self.container.singleton(Mailer, SmtpMailer)

        def boot(self) -> None:
            self.container.resolve(Mailer).verify()

``register()`` runs as soon as the provider is added to the app and
should only bind. ``boot()`` runs once when the app freezes, after every
provider has registered, so it may resolve anything.
"""

from wren.container import Container


class ServiceProvider:
    """Base class for service providers. Both hooks default to no-ops."""

    __slots__ = ("container",)

    def __init__(self, container: Container) -> None:
        self.container = container

    def register(self) -> None:
        """Bind services into ``self.container``."""

    def boot(self) -> None:
        """Finish setup once every provider has registered."""
