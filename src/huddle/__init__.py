"""huddle: an embeddable realtime chat service with a supervised worker."""
