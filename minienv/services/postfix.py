"""Postfix SMTP relay for catching application mail."""

from typing import List, Optional

from minienv.logging import print_info, print_success
from minienv.services.base import Service

DOMAIN = "example.com"

# Arguments are passed positionally so no value is ever re-parsed by bash
MAIL_SCRIPT = 'printf "%s\\n" "$4" | mail -s "$2" -a "From: $3" "$1"'
SENDMAIL_SCRIPT = 'printf "Subject: %s\\nFrom: %s\\nTo: %s\\n\\n%s\\n" "$2" "$3" "$1" "$4" | sendmail -v "$1"'


class Postfix(Service):
    name = "postfix"
    title = "Postfix"
    timeout = 120

    def access_info(self) -> List[str]:
        ip = self.minikube.ip()
        port = self.nodeport("smtp")
        if not (ip and port):
            return []
        return [
            f"  SMTP Server: {ip}:{port}",
            f"  Domain: {DOMAIN}",
            "  Auth: user:password",
        ]

    def send_test_email(
        self,
        to: Optional[str] = None,
        sender: Optional[str] = None,
        subject: Optional[str] = None,
        body: Optional[str] = None,
    ) -> int:
        """Send a message from inside the pod with mail, falling back to sendmail."""
        to = to or "test@example.com"
        sender = sender or "sender@example.com"
        subject = subject or "Test Email"
        body = body or "This is a test email from Postfix"
        pod = self.pod()

        print_info(f"Sending test email to: {to}")
        values = [to, subject, sender, body]
        code = self.kube.exec(pod, ["bash", "-c", MAIL_SCRIPT, "mail", *values])
        if code != 0:
            code = self.kube.exec(pod, ["bash", "-c", SENDMAIL_SCRIPT, "sendmail", *values])

        if code == 0:
            print_success("Email sent (check logs for delivery status)")
        return code

    def queue(self) -> int:
        print_info("Checking mail queue...")
        return self.exec("postqueue", "-p")

    def flush(self) -> int:
        print_info("Flushing mail queue...")
        code = self.exec("postqueue", "-f")
        if code == 0:
            print_success("Mail queue flushed")
        return code
