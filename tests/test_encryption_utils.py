import base64
import unittest
from unittest.mock import patch

from cryptography.fernet import Fernet
from keyring.errors import KeyringError

from tracker_relo import encryption_utils
from tracker_relo.utils import ConfigError


class TestEncryptionUtils(unittest.TestCase):
    def setUp(self):
        self.key = Fernet.generate_key()
        stored = base64.urlsafe_b64encode(self.key).decode('utf-8')
        patcher = patch('tracker_relo.encryption_utils.keyring')
        self.mock_keyring = patcher.start()
        self.addCleanup(patcher.stop)
        self.mock_keyring.get_password.return_value = stored

    def test_encrypt_then_decrypt(self):
        token = encryption_utils.encrypt_password('hunter2')
        self.assertTrue(token.startswith(encryption_utils.ENCRYPTION_PREFIX))
        self.assertNotIn('hunter2', token)
        self.assertEqual(encryption_utils.decrypt_password(token), 'hunter2')

    def test_empty_password_is_not_encrypted(self):
        self.assertEqual(encryption_utils.encrypt_password(''), '')
        self.mock_keyring.get_password.assert_not_called()

    def test_plain_values_pass_through(self):
        self.assertEqual(encryption_utils.decrypt_password('plain'), 'plain')

    def test_generates_and_stores_key_when_missing(self):
        self.mock_keyring.get_password.return_value = None
        token = encryption_utils.encrypt_password('hunter2')
        self.mock_keyring.set_password.assert_called_once()
        service, user, _ = self.mock_keyring.set_password.call_args.args
        self.assertEqual((service, user), (encryption_utils.KEYRING_SERVICE_NAME, encryption_utils.KEYRING_USERNAME))
        self.assertTrue(token.startswith('ENC:'))

    def test_wrong_key_raises_config_error(self):
        token = encryption_utils.encrypt_password('hunter2')
        other_key = base64.urlsafe_b64encode(Fernet.generate_key()).decode('utf-8')
        self.mock_keyring.get_password.return_value = other_key
        with self.assertRaises(ConfigError):
            encryption_utils.decrypt_password(token)

    def test_keychain_unavailable_raises_config_error(self):
        self.mock_keyring.get_password.side_effect = KeyringError('no backend')
        with self.assertRaises(ConfigError):
            encryption_utils.encrypt_password('hunter2')


if __name__ == '__main__':
    unittest.main()
