"""Tests for :mod:`forwardauth.controllers.authentication`."""

from http import HTTPStatus as status
from unittest import TestCase, mock

from werkzeug.datastructures import MultiDict
from werkzeug.exceptions import InternalServerError

from forwardauth.controllers import authentication
from forwardauth.domain import SessionState, UserRecord
from forwardauth.exceptions import DirectoryUnavailable
from forwardauth.services.exceptions import SessionCreationFailed
from forwardauth.services.session_store import SessionStore
from forwardauth.services.users import UserDirectory

JANE = UserRecord(dn='CN=Jane Doe,OU=Users,DC=example,DC=com',
                  display_name='Jane Doe',
                  member_of=('CN=Staff,OU=Groups,DC=example,DC=com',))
DOMAINS = ['good.example.com']


def fake_store() -> SessionStore:
    return SessionStore('localhost', 6379, 0, 'foosecret', fake=True)


def mock_directory(*users: UserRecord, password_ok: bool = True) \
        -> mock.MagicMock:
    directory = mock.MagicMock(spec=UserDirectory)
    directory.find_user.return_value = list(users)
    directory.authenticate.return_value = password_ok
    return directory


class TestCheckAccess(TestCase):
    """The decision depends only on the session."""

    def setUp(self):
        self.store = fake_store()

    def test_anonymous(self):
        """Nobody has logged in."""
        data, code, headers = authentication.check_access(self.store.new(),
                                                          ['staff'])
        self.assertEqual(code, status.UNAUTHORIZED)
        self.assertEqual(data, {})
        self.assertEqual(headers['Cache-Control'], 'no-cache')

    def test_authorized(self):
        """The user belongs to an allowed group."""
        session = self.store.new()
        session.set_user(JANE)
        _, code, _ = authentication.check_access(session, ['admins', 'staff'])
        self.assertEqual(code, status.OK)

    def test_unauthorized(self):
        """The user belongs to none of the allowed groups."""
        session = self.store.new()
        session.set_user(JANE)
        _, code, _ = authentication.check_access(session, ['admins'])
        self.assertEqual(code, status.FORBIDDEN)

    def test_no_groups_configured(self):
        """Any authenticated user is allowed."""
        session = self.store.new()
        session.set_user(JANE._replace(member_of=()))
        _, code, _ = authentication.check_access(session, [])
        self.assertEqual(code, status.OK)

    def test_classify(self):
        session = self.store.new()
        self.assertEqual(authentication.classify(session, []),
                         SessionState.ANONYMOUS)
        session.set_user(JANE)
        self.assertEqual(authentication.classify(session, ['staff']),
                         SessionState.AUTHENTICATED)
        self.assertEqual(authentication.classify(session, ['admins']),
                         SessionState.AUTHENTICATED_UNAUTHORIZED)


class TestAttemptLogin(TestCase):
    """Credentials are checked against the directory."""

    def test_success(self):
        """The user is found, and the bind succeeds."""
        directory = mock_directory(JANE)
        outcome = authentication.attempt_login('jdoe', 'pw', directory)
        self.assertTrue(outcome.authenticated)
        self.assertIsNone(outcome.error)
        self.assertEqual(outcome.user.dn, JANE.dn)
        self.assertEqual(outcome.user.username, 'jdoe',
                         'The login name is attached to the user')
        directory.authenticate.assert_called_once_with(JANE, 'pw')

    def test_not_found(self):
        """No account matches."""
        directory = mock_directory()
        outcome = authentication.attempt_login('jdoe', 'pw', directory)
        self.assertFalse(outcome.authenticated)
        self.assertEqual(outcome.error, authentication.INVALID_CREDENTIALS)
        directory.authenticate.assert_not_called()

    def test_wrong_password(self):
        """The bind fails."""
        directory = mock_directory(JANE, password_ok=False)
        outcome = authentication.attempt_login('jdoe', 'wrong', directory)
        self.assertFalse(outcome.authenticated)
        self.assertEqual(outcome.error, authentication.INVALID_CREDENTIALS)

    def test_directory_unavailable(self):
        """The directory cannot be searched."""
        directory = mock_directory()
        directory.find_user.side_effect = DirectoryUnavailable('down')
        outcome = authentication.attempt_login('jdoe', 'pw', directory)
        self.assertFalse(outcome.authenticated)
        self.assertEqual(outcome.error, authentication.INVALID_CREDENTIALS)

    def test_no_directory(self):
        """The directory is not configured."""
        outcome = authentication.attempt_login('jdoe', 'pw', None)
        self.assertFalse(outcome.authenticated)

    def test_first_match_wins(self):
        """Several accounts match; the first one is used."""
        other = JANE._replace(dn='CN=Other,OU=Users,DC=example,DC=com')
        directory = mock_directory(JANE, other)
        outcome = authentication.attempt_login('jdoe', 'pw', directory)
        self.assertEqual(outcome.user.dn, JANE.dn)
        directory.authenticate.assert_called_once_with(JANE, 'pw')

    @mock.patch('forwardauth.config.DEVELOPMENT', True)
    def test_development_user(self):
        """In development the test user needs no directory."""
        outcome = authentication.attempt_login('test', 'test', None)
        self.assertTrue(outcome.authenticated)
        self.assertEqual(outcome.user.username, 'test')

        outcome = authentication.attempt_login('test', 'nope', None)
        self.assertFalse(outcome.authenticated)

    @mock.patch('forwardauth.config.DEVELOPMENT', False)
    def test_no_development_user_in_production(self):
        """Outside of development the test user is an ordinary name."""
        directory = mock_directory()
        outcome = authentication.attempt_login('test', 'test', directory)
        self.assertFalse(outcome.authenticated)
        directory.find_user.assert_called_once_with('test')


class TestLogin(TestCase):
    """Handle the submitted login form."""

    def setUp(self):
        self.session = fake_store().new()

    def login(self, form_data, directory=None):
        return authentication.login(MultiDict(form_data), self.session,
                                    directory or mock_directory(JANE),
                                    DOMAINS, '/default')

    def test_success(self):
        """Valid credentials and an allowed return URI."""
        data, code, headers = self.login({
            'username': 'jdoe', 'password': 'pw',
            'request_uri': 'https://good.example.com/app?x=1'
        })
        self.assertEqual(code, status.FOUND)
        self.assertEqual(headers['Location'],
                         'https://good.example.com/app?x=1')
        self.assertTrue(self.session.authenticated)
        self.assertEqual(self.session.get_user().username, 'jdoe')

    def test_disallowed_redirect(self):
        """The return URI is on some other domain."""
        _, code, headers = self.login({
            'username': 'jdoe', 'password': 'pw',
            'request_uri': 'https://evil.example.com/'
        })
        self.assertEqual(code, status.FOUND)
        self.assertEqual(headers['Location'], '/default')

    def test_no_redirect(self):
        """No return URI was provided."""
        _, code, headers = self.login({'username': 'jdoe', 'password': 'pw'})
        self.assertEqual(headers['Location'], '/default')

    def test_missing_fields(self):
        """The form is incomplete."""
        data, code, _ = self.login({'username': 'jdoe'})
        self.assertEqual(code, status.BAD_REQUEST)
        self.assertEqual(data['error'], authentication.INVALID_CREDENTIALS)
        self.assertFalse(self.session.authenticated)

    def test_whitespace_password(self):
        """A password of only spaces is passed to the directory as entered."""
        directory = mock_directory(JANE)
        _, code, _ = self.login({'username': 'jdoe', 'password': '   '},
                                directory)
        self.assertEqual(code, status.FOUND)
        directory.authenticate.assert_called_once_with(JANE, '   ')

    def test_empty_password(self):
        """An empty password is refused before reaching the directory."""
        directory = mock_directory(JANE)
        _, code, _ = self.login({'username': 'jdoe', 'password': ''},
                                directory)
        self.assertEqual(code, status.BAD_REQUEST)
        directory.find_user.assert_not_called()

    def test_bad_credentials(self):
        """The directory rejects the password."""
        data, code, _ = self.login({'username': 'jdoe', 'password': 'wrong'},
                                   mock_directory(JANE, password_ok=False))
        self.assertEqual(code, status.BAD_REQUEST)
        self.assertEqual(data['error'], authentication.INVALID_CREDENTIALS)
        self.assertFalse(self.session.authenticated)
        self.assertFalse(self.session.modified)

    def test_session_creation_fails(self):
        """The session store is unavailable."""
        self.session = mock.MagicMock()
        self.session.set_user.side_effect = SessionCreationFailed('down')
        with self.assertRaises(InternalServerError):
            self.login({'username': 'jdoe', 'password': 'pw'})


class TestLogout(TestCase):
    def test_logout(self):
        """The session is destroyed."""
        store = fake_store()
        session = store.new()
        session.set_user(JANE)
        _, code, headers = authentication.logout(session, '/auth')
        self.assertEqual(code, status.FOUND)
        self.assertEqual(headers['Location'], '/auth')
        self.assertFalse(session.authenticated)
        _, code, _ = authentication.check_access(session, [])
        self.assertEqual(code, status.UNAUTHORIZED)


class TestLanding(TestCase):
    def test_landing(self):
        """The login form carries the return URI."""
        data, code, _ = authentication.landing(fake_store().new(),
                                               'https://good.example.com/')
        self.assertEqual(code, status.OK)
        self.assertIsNone(data['user'])
        self.assertEqual(data['form'].request_uri.data,
                         'https://good.example.com/')
