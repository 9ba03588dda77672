from gmwire import crypto

# Quick one-off secret for a server and its clients.
# - 48 random bytes, base64url without padding, so it pastes cleanly into env files.
# - Every process that talks to the same server needs the same value.

# 1) Generate the secret.
secret = crypto.generate_secret()

# 2) Print it in a form you can paste straight into a shell or .env file.
print("Shared secret (export on the server and every client):")
print(f"GM_SERVER_SECRET={secret}")
