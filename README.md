# fireup

`fireup` starts a Firecracker microVM on a Linux host with KVM. It does the following:

1. It downloads a kernel.
2. It builds an ext4 root filesystem for the chosen distribution.
3. It sets up the host network: a tap device, a bridge, NAT and DNSMasq.
4. It boots the VM through the Firecracker API socket.

Everything it downloads or builds goes into `~/.fireup`. That includes:

- kernels (`vmlinux-*`)
- rootfs images (`*.ext4`)
- the SSH key `id_rsa`
- the log file `firecracker.log`

## Requirements

You need a Linux host with a `kvm` kernel module loaded. Before it starts, `fireup` checks with `lsmod`.

Commands that need privileges run through `sudo`, unless you are already root.

These programs must be on your `PATH`:

- `firecracker`
- `curl` and `wget`
- `sudo`
- `ip`, `iptables` and `sysctl`
- `dnsmasq` and `systemctl`
- `unsquashfs`, `truncate` and `mkfs.ext4`
- `ssh-keygen` and `ssh`
- `debootstrap`, for Debian only

## Install

```
pip install .
```

## Usage

Running `fireup` on its own starts a microVM. The default distribution is Ubuntu:

```
fireup
```

To choose another distribution, use one of these flags:

```
fireup --debian
fireup --alpine
fireup --nixos
```

If you give more than one, the first match in this order wins: Debian, Alpine, NixOS, Ubuntu.

These options set resources and boot settings:

```
fireup --vcpu 2 --memory 1024
fireup --vmlinux /path/to/vmlinux
fireup --boot-args "console=ttyS0 reboot=k panic=1 pci=off ip=dhcp"
```

- **vCPUs:** the default is the host's CPU count.
- **Memory:** the default is 512 MiB. When `fireup` runs without a subcommand and you pass `--nixos`, the default is 2048 MiB.
- **Number range:** `--vcpu` and `--memory` take a number from 0 to 65535.
- **Boot arguments:** `--boot-args` replaces the kernel command line completely.
- **Kernel image:** `--vmlinux` sets the kernel image that Firecracker boots. The default kernel is still downloaded into `~/.fireup`.
- **Root filesystem:** `--rootfs` is accepted but has no effect. The VM always boots the ext4 image that `fireup` built for the chosen distribution.

`fireup up` takes the same options as `fireup` on its own, with one difference: under `up`, the memory default is always 512 MiB.

### Subcommands

| Command | What it does |
| --- | --- |
| `fireup init` | Writes `fire.toml` in the current directory. If the file already exists, it asks before overwriting. |
| `fireup up` | Starts the microVM. |
| `fireup down` | Kills every `firecracker` process and removes `/tmp/firecracker.sock`. |
| `fireup status` | Shows whether a `firecracker` process is running. |
| `fireup logs [-f]` | Shows `~/.fireup/firecracker.log`. With `-f` it follows the log. |
| `fireup ssh` | Opens an SSH session as `root` on `vm0.firecracker.local`. |
| `fireup reset` | Asks you to type `yes`. Then it stops the VM and deletes every `~/.fireup/*.ext4`. |

`fireup --version` prints the version.

If a command fails, `fireup` prints `Error: ...` to standard error and exits with status 1.

## Configuration

`fireup init` writes a `fire.toml` like this one:

```toml
distro = "Ubuntu"

[vm]
vcpu = 4
memory = 512
```

- `distro` is one of `Debian`, `Alpine`, `Ubuntu` or `NixOS`.
- The `[vm]` table can also set `vmlinux`, `rootfs` and `boot_args`.
- Any `vcpu` or `memory` you leave out falls back to the defaults above.

If `fire.toml` in the current directory can be read, `fireup up` uses its settings in place of the command-line options.

## Networking

- **Devices:** the guest attaches to `tap0`, which is bridged to `br0`.
- **Bridge address:** `br0` gets `172.16.0.1/30`.
- **Forwarding and NAT:** IP forwarding is switched on, and a MASQUERADE rule is added on the host's default-route interface.
- **DNSMasq setup:** DNSMasq is configured in `/etc/dnsmasq.d/firecracker.conf`. If that file already exists, it is left alone.
- **What DNSMasq provides:** it gives the guest an address and the name `vm0.firecracker.local`.
- **Guest DNS:** for every distribution except NixOS, the guest's `/etc/resolv.conf` is then pointed at the bridge over SSH.

## Limitations

- **One microVM at a time.** The API socket, the tap device and the guest address are fixed.
- **`fireup down` kills all Firecracker processes** on the host, not only the one `fireup` started.
- **Ext4 images are built once.** After that they are reused. Run `fireup reset` to rebuild them.
- **No live status.** `fireup` does not watch or report on the guest after it boots. Use `fireup logs` for the Firecracker log.